"""Tests for match module."""
from __future__ import annotations

from dataclasses import replace

import pytest

from pixel_blueprint.catalog import BeadCatalogs, BeadRef, build_catalog
from pixel_blueprint.config import Config
from pixel_blueprint.match import (
    CatalogIndex,
    analyze_beads,
    find_best_match,
    match_palette,
    prioritize_refs,
)

RED = (255, 0, 0, 255)
DARK_RED = (200, 0, 0, 255)
GREEN = (0, 255, 0, 255)
BLUE = (0, 0, 255, 255)


def _config(mode: str, **kwargs) -> Config:
    return Config(bead_matching_enabled=True, bead_source_mode=mode, **kwargs)


@pytest.fixture
def system_catalog():
    return build_catalog(
        {
            "Alpha": {"A1": "#FF0000", "A2": "#00FF00", "A3": "#0000FF"},
            "Beta": {"B1": "#FF0000"},
        }
    )


class TestFindBestMatch:
    """Tests for find_best_match function."""

    @pytest.mark.parametrize("algorithm", ["rgb", "deltaE76", "deltaE2000"])
    def test_exact_match(self, system_catalog, algorithm: str) -> None:
        entry, dist = find_best_match(RED, CatalogIndex(system_catalog), algorithm)
        assert entry.hex == "#FF0000"
        assert dist == pytest.approx(0.0, abs=1e-9)

    def test_nearest(self, system_catalog) -> None:
        entry, dist = find_best_match((10, 10, 240), CatalogIndex(system_catalog), "deltaE2000")
        assert entry.hex == "#0000FF"
        assert dist > 0

    def test_empty_catalog(self) -> None:
        entry, dist = find_best_match(RED, CatalogIndex({}), "deltaE2000")
        assert entry is None
        assert dist == float("inf")

    def test_ties_keep_catalog_order(self) -> None:
        """Equally distant beads resolve to the first in catalog order."""
        catalog = build_catalog({"Alpha": {"1": "#5A6464", "2": "#6E6464"}})
        entry, _ = find_best_match((100, 100, 100), CatalogIndex(catalog), "rgb")
        assert entry.refs[0].code == "1"


class TestPrioritizeRefs:
    """Tests for prioritize_refs function."""

    def test_preferred_brand_first(self) -> None:
        refs = (BeadRef("Alpha", "1"), BeadRef("Beta", "x"), BeadRef("Gamma", "g"))
        assert prioritize_refs(refs, ("Gamma", "Beta")) == (
            BeadRef("Gamma", "g"),
            BeadRef("Beta", "x"),
            BeadRef("Alpha", "1"),
        )

    def test_no_priority_keeps_order(self) -> None:
        refs = (BeadRef("Beta", "x"), BeadRef("Alpha", "1"))
        assert prioritize_refs(refs, ()) == refs


class TestMatchPalette:
    """Tests for match_palette function."""

    def test_disabled(self, entry_factory, system_catalog) -> None:
        """Matching off leaves entries untouched and returns no analysis."""
        palette = [entry_factory("A", RED)]
        catalogs = BeadCatalogs(system=system_catalog)
        config = Config(bead_matching_enabled=False, bead_source_mode="system")
        matched, analysis = match_palette(palette, catalogs, config)
        assert matched == palette
        assert analysis is None

    def test_system_match(self, entry_factory, system_catalog) -> None:
        palette = [entry_factory("A", RED, 3), entry_factory("B", BLUE, 1)]
        matched, analysis = match_palette(
            palette, BeadCatalogs(system=system_catalog), _config("system")
        )
        assert matched[0].matched_bead.hex == "#FF0000"
        assert matched[0].bead_delta_e == pytest.approx(0.0, abs=1e-9)
        assert not matched[0].is_bead_missing
        assert matched[1].matched_bead.refs == (BeadRef("Alpha", "A3"),)
        assert analysis.accuracy == 100
        assert analysis.missing_count == 0
        assert analysis.total_beads_in_scope == 3

    def test_threshold_flags_missing(self, entry_factory, system_catalog) -> None:
        """A match beyond the threshold keeps the bead but flags it missing."""
        palette = [entry_factory("A", DARK_RED)]
        matched, analysis = match_palette(
            palette,
            BeadCatalogs(system=system_catalog),
            _config("system", bead_accuracy_threshold=0),
        )
        assert matched[0].is_bead_missing
        assert matched[0].matched_bead.hex == "#FF0000"
        assert analysis.accuracy == 0
        assert analysis.missing_refs == ["Alpha:A1"]

    @pytest.mark.parametrize(
        "algorithm,missing", [("deltaE76", True), ("deltaE2000", True), ("rgb", False)]
    )
    def test_loosest_slider_is_bounded(self, entry_factory, algorithm, missing) -> None:
        """Slider 100 caps Delta E at 100; far colors stay missing.

        The scaled RGB threshold (500) covers every possible RGB distance.
        """
        yellow_only = build_catalog({"Alpha": {"Y": "#FFFF00"}})
        matched, _ = match_palette(
            [entry_factory("A", BLUE)],
            BeadCatalogs(system=yellow_only),
            _config(
                "system",
                bead_accuracy_threshold=100,
                bead_distance_algorithm=algorithm,
            ),
        )
        assert matched[0].matched_bead.hex == "#FFFF00"
        assert matched[0].is_bead_missing is missing

    def test_priority_brand(self, entry_factory, system_catalog) -> None:
        """Preferred brands move to the front without touching the catalog."""
        palette = [entry_factory("A", RED)]
        matched, _ = match_palette(
            palette,
            BeadCatalogs(system=system_catalog),
            _config("system", bead_priority_brands=("Beta",)),
        )
        assert matched[0].matched_bead.refs[0] == BeadRef("Beta", "B1")
        assert system_catalog["#FF0000"].refs[0] == BeadRef("Alpha", "A1")

    def test_patches_applied(self, entry_factory, system_catalog) -> None:
        """Patched codes are matched at their corrected color."""
        palette = [entry_factory("A", (0, 0, 250, 255))]
        catalogs = BeadCatalogs(
            system=system_catalog, patches={"Beta": {"B1": "#0000FA"}}
        )
        matched, _ = match_palette(palette, catalogs, _config("system"))
        assert matched[0].matched_bead.refs == (BeadRef("Beta", "B1"),)
        assert matched[0].bead_delta_e == pytest.approx(0.0, abs=1e-9)

    def test_user_inventory_match(self, entry_factory, system_catalog) -> None:
        user = build_catalog({"Alpha": {"A1": "#FF0000"}})
        palette = [entry_factory("A", RED)]
        matched, analysis = match_palette(
            palette,
            BeadCatalogs(system=system_catalog, user=user),
            _config("user", bead_accuracy_threshold=0),
        )
        assert not matched[0].is_bead_missing
        assert matched[0].matched_bead.refs == (BeadRef("Alpha", "A1"),)
        assert analysis.total_beads_in_scope == 1

    def test_user_falls_back_to_system(self, entry_factory, system_catalog) -> None:
        """Colors outside the inventory show the system match, flagged missing."""
        user = build_catalog({"Alpha": {"A2": "#00FF00"}})
        palette = [entry_factory("A", RED)]
        config = _config("user", bead_accuracy_threshold=0)
        matched, analysis = match_palette(
            palette, BeadCatalogs(system=system_catalog, user=user), config
        )
        system_best, _ = find_best_match(
            RED, CatalogIndex(system_catalog), config.bead_distance_algorithm
        )
        assert matched[0].is_bead_missing
        assert matched[0].matched_bead is not None
        assert matched[0].matched_bead.hex == system_best.hex
        assert matched[0].bead_delta_e == pytest.approx(0.0, abs=1e-9)
        assert analysis.missing_refs == ["Alpha:A1"]

    def test_user_and_system_empty(self, entry_factory) -> None:
        """No bead anywhere: missing with no suggestion."""
        palette = [entry_factory("A", RED)]
        matched, analysis = match_palette(palette, BeadCatalogs(), _config("user"))
        assert matched[0].is_bead_missing
        assert matched[0].matched_bead is None
        assert matched[0].bead_delta_e is None
        assert analysis.missing_refs == []

    def test_empty_system_catalog(self, entry_factory) -> None:
        """An empty catalog flags everything missing instead of failing."""
        palette = [entry_factory("A", RED), entry_factory("B", GREEN)]
        matched, analysis = match_palette(palette, None, _config("system"))
        assert all(entry.is_bead_missing for entry in matched)
        assert all(entry.matched_bead is None for entry in matched)
        assert analysis.accuracy == 0
        assert analysis.missing_count == 2
        assert analysis.total_beads_in_scope == 0


class TestAnalyzeBeads:
    """Tests for analyze_beads function."""

    def test_empty_palette(self) -> None:
        analysis = analyze_beads([], 10)
        assert analysis.accuracy == 100
        assert analysis.missing_count == 0

    def test_rounding_and_dedupe(self, entry_factory, system_catalog) -> None:
        """Accuracy rounds half up; repeated missing codes are listed once."""
        bead = system_catalog["#FF0000"]
        palette = [
            entry_factory("A", GREEN),
            entry_factory("B", RED),
            entry_factory("C", DARK_RED),
        ]
        palette[1] = replace(palette[1], matched_bead=bead, is_bead_missing=True)
        palette[2] = replace(palette[2], matched_bead=bead, is_bead_missing=True)
        analysis = analyze_beads(palette, 4)
        assert analysis.accuracy == 33
        assert analysis.missing_count == 2
        assert analysis.missing_refs == ["Alpha:A1"]
