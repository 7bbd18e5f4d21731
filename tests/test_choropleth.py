from __future__ import annotations

import math

from simplemaps.choropleth import color_for, fill_for, legend, value_range
from simplemaps.models import DEFAULT_CHOROPLETH_COLORS, ChoroplethSpec

STOPS = ("#000", "#111", "#222", "#333", "#444")


def test_missing_key_returns_null_color() -> None:
    assert color_for("a", {}, ChoroplethSpec()) is None
    assert color_for("a", {}, ChoroplethSpec(null_color="#eee")) == "#eee"
    assert color_for("zzz", {"a": 1.0, "b": 2.0}, ChoroplethSpec(null_color="#eee")) == "#eee"


def test_equal_min_max_returns_middle_stop() -> None:
    spec = ChoroplethSpec(colors=STOPS)
    assert color_for("a", {"a": 5, "b": 5}, spec) == "#222"
    four = ChoroplethSpec(colors=("#0", "#1", "#2", "#3"))
    assert color_for("a", {"a": 1}, four) == "#2"


def test_stepped_buckets() -> None:
    spec = ChoroplethSpec(colors=STOPS)
    values = {"lo": 0.0, "a": 19.9, "b": 20.0, "mid": 50.0, "c": 79.9, "hi": 100.0}
    assert color_for("lo", values, spec) == "#000"
    assert color_for("a", values, spec) == "#000"
    assert color_for("b", values, spec) == "#111"
    assert color_for("mid", values, spec) == "#222"
    assert color_for("c", values, spec) == "#333"
    # t == 1 clips into the last bucket
    assert color_for("hi", values, spec) == "#444"


def test_explicit_bounds_clip_out_of_range_values() -> None:
    spec = ChoroplethSpec(colors=STOPS, min_value=10, max_value=20)
    values = {"below": 0.0, "above": 50.0, "inside": 15.0}
    assert color_for("below", values, spec) == "#000"
    assert color_for("above", values, spec) == "#444"
    assert color_for("inside", values, spec) == "#222"


def test_non_finite_values_are_ignored() -> None:
    spec = ChoroplethSpec(colors=STOPS, null_color="#eee")
    values = {"a": 0.0, "b": 10.0, "nan": math.nan, "inf": math.inf}
    assert value_range(values, spec) == (0.0, 10.0)
    assert color_for("nan", values, spec) == "#eee"
    assert color_for("b", values, spec) == "#444"


def test_default_colors() -> None:
    assert ChoroplethSpec().colors == DEFAULT_CHOROPLETH_COLORS
    assert ChoroplethSpec().match_key == "name"


def test_fill_for_joins_on_match_key() -> None:
    spec = ChoroplethSpec(match_key="iso", colors=STOPS, null_color="#eee")
    values = {"FRA": 1.0, "DEU": 2.0}
    assert fill_for({"iso": "DEU"}, values, spec) == "#444"
    assert fill_for({"name": "Germany"}, values, spec) == "#eee"


def test_legend_ranges_cover_value_range() -> None:
    rows = legend({"a": 0.0, "b": 50.0}, ChoroplethSpec(colors=STOPS))
    assert [row[2] for row in rows] == list(STOPS)
    assert rows[0][0] == 0.0
    assert math.isclose(rows[-1][1], 50.0)
    assert legend({}, ChoroplethSpec()) == []
