"""Continent classification for geography features.

Features coming from different GIS exports spell the same facts differently:
ISO codes live under ``ISO_A3``, ``ADM0_A3`` or ``iso3`` and names under
``name``, ``ADMIN`` or ``SOVEREIGNT``. Classification checks an explicit
continent property first, then the ISO code, then the name. The lookup table
is necessarily incomplete, so an unknown country is a silent no-match.
"""

from __future__ import annotations

import logging
from collections import Counter
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import yaml

from .features import GeographyFeature


_LOGGER = logging.getLogger("simplemaps.continents")

CONTINENT_TABLE_PATH = Path(__file__).resolve().parent / "data" / "continents.yaml"

CONTINENTS = (
    "Africa",
    "Asia",
    "Europe",
    "North America",
    "South America",
    "Oceania",
    "Antarctica",
)
_CONTINENT_BY_FOLDED = {label.casefold(): label for label in CONTINENTS}

CONTINENT_FIELDS = ("CONTINENT", "continent")
ISO3_FIELDS = ("ISO_A3", "iso_a3", "ADM0_A3", "adm0_a3", "SOV_A3", "sov_a3", "ISO3", "iso3")
NAME_FIELDS = ("name", "NAME", "ADMIN", "admin", "NAME_LONG", "name_long", "SOVEREIGNT", "sovereignt")


class ContinentTable:
    """Read-only lookup from ISO-3 codes and name variants to continent labels."""

    def __init__(self, by_iso3: Mapping[str, str], by_name: Mapping[str, str]) -> None:
        self._by_iso3 = dict(by_iso3)
        self._by_name = dict(by_name)
        self._by_folded_name = {name.casefold(): label for name, label in by_name.items()}

    def for_iso3(self, code: str) -> str | None:
        return self._by_iso3.get(code.strip().upper())

    def for_name(self, name: str) -> str | None:
        cleaned = name.strip()
        return self._by_name.get(cleaned) or self._by_folded_name.get(cleaned.casefold())

    def __len__(self) -> int:
        return len(self._by_iso3) + len(self._by_name)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ContinentTable:
        by_iso3: dict[str, str] = {}
        by_name: dict[str, str] = {}
        for label, section in raw.items():
            if label not in CONTINENTS:
                raise ValueError(f"Unknown continent label '{label}' in continent table")
            if not isinstance(section, Mapping):
                raise ValueError(f"Expected mapping for continent '{label}'")
            for code in section.get("iso3") or []:
                normalized = str(code).strip().upper()
                if len(normalized) != 3 or not normalized.isalpha():
                    raise ValueError(f"Invalid ISO3 code '{code}' under {label}")
                _insert(by_iso3, normalized, label, "ISO3 code")
            for name in section.get("names") or []:
                if not isinstance(name, str) or not name.strip():
                    raise ValueError(f"Invalid country name {name!r} under {label}")
                _insert(by_name, name.strip(), label, "country name")
        return cls(by_iso3, by_name)


def _insert(index: dict[str, str], key: str, label: str, kind: str) -> None:
    existing = index.get(key)
    if existing is not None and existing != label:
        raise ValueError(f"Conflicting continent for {kind} '{key}': {existing} vs {label}")
    index[key] = label


@lru_cache(maxsize=1)
def default_table() -> ContinentTable:
    """Load the bundled continent table once per process."""
    return load_table(CONTINENT_TABLE_PATH)


def load_table(path: Path) -> ContinentTable:
    if not path.exists():
        raise FileNotFoundError(f"Continent table not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected mapping at top level of {path}")
    return ContinentTable.from_mapping(raw)


def _first_string(properties: Mapping[str, Any], fields: Sequence[str]) -> str | None:
    for name in fields:
        value = properties.get(name)
        if isinstance(value, str) and value.strip():
            return value
    return None


def classify(
    feature: GeographyFeature | Mapping[str, Any],
    table: ContinentTable | None = None,
) -> str | None:
    """Return the continent label for a feature or a bare property bag."""
    properties = feature.properties if isinstance(feature, GeographyFeature) else feature
    if not properties:
        return None
    lookup = table or default_table()

    explicit = _first_string(properties, CONTINENT_FIELDS)
    if explicit is not None:
        label = _CONTINENT_BY_FOLDED.get(explicit.strip().casefold())
        if label is not None:
            return label

    code = _first_string(properties, ISO3_FIELDS)
    if code is not None:
        label = lookup.for_iso3(code)
        if label is not None:
            return label

    name = _first_string(properties, NAME_FIELDS)
    if name is not None:
        label = lookup.for_name(name)
        if label is not None:
            return label

    _LOGGER.debug("No continent match for code=%r name=%r", code, name)
    return None


def _continent_set(continents: str | Iterable[str]) -> frozenset[str]:
    requested = [continents] if isinstance(continents, str) else list(continents)
    wanted: set[str] = set()
    for item in requested:
        label = _CONTINENT_BY_FOLDED.get(str(item).strip().casefold())
        if label is None:
            _LOGGER.warning("Ignoring unknown continent filter value: %s", item)
            continue
        wanted.add(label)
    return frozenset(wanted)


def filter_by_continents(
    features: Iterable[GeographyFeature],
    continents: str | Iterable[str],
    table: ContinentTable | None = None,
) -> list[GeographyFeature]:
    """Keep features classified into any of the requested continents."""
    wanted = _continent_set(continents)
    return [feature for feature in features if classify(feature, table) in wanted]


def continent_counts(
    features: Iterable[GeographyFeature],
    table: ContinentTable | None = None,
) -> dict[str, int]:
    """Count features per continent; unclassifiable ones count under ``None``."""
    counts = Counter(classify(feature, table) or "None" for feature in features)
    return dict(sorted(counts.items()))
