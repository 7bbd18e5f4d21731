"""Utility helpers for logging, number formatting, and JSON output."""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(log_file: Path | None = None, verbose: bool = False) -> None:
    """Configure root logging to console and optionally a file."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, sort_keys=True, ensure_ascii=False)
        fh.write("\n")


def fmt_num(value: float) -> str:
    """Shortest stable text for a coordinate (``3`` rather than ``3.0``)."""
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"Cannot format non-finite number: {value!r}")
    if number == 0.0:
        return "0"
    if number.is_integer() and abs(number) < 1e15:
        return str(int(number))
    return repr(number)


def fmt_point(x: float, y: float) -> str:
    return f"{fmt_num(x)},{fmt_num(y)}"
