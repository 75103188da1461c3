"""Matching palette colors against bead catalogs."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .catalog import BeadCatalogEntry, BeadCatalogs, BeadRef, Catalog, apply_patches
from .color import (
    bead_distance_threshold,
    delta_e_76,
    delta_e_2000,
    rgb_distance,
    rgb_to_lab,
    round_half_up,
)
from .config import Config
from .quantize import PaletteEntry

logger = logging.getLogger("pixel_blueprint")


@dataclass
class BeadAnalysis:
    """Aggregate bead coverage of a palette."""

    accuracy: int
    missing_count: int
    missing_refs: List[str] = field(default_factory=list)
    total_beads_in_scope: int = 0


class CatalogIndex:
    """Catalog entries with their colors stacked for vectorized scans.

    Iteration order follows the catalog's insertion order, which decides
    ties between equally distant beads.
    """

    def __init__(self, catalog: Catalog) -> None:
        self.entries: List[BeadCatalogEntry] = list(catalog.values())
        if self.entries:
            self.rgb = np.array([e.rgb for e in self.entries], dtype=np.float64)
            self.lab = np.array([e.lab for e in self.entries], dtype=np.float64)
        else:
            self.rgb = np.zeros((0, 3), dtype=np.float64)
            self.lab = np.zeros((0, 3), dtype=np.float64)

    def __len__(self) -> int:
        return len(self.entries)


def find_best_match(
    rgb: Sequence[int], index: CatalogIndex, algorithm: str
) -> Tuple[Optional[BeadCatalogEntry], float]:
    """Find the nearest catalog entry to a color.

    Args:
        rgb: Target color as (r, g, b).
        index: Catalog to scan.
        algorithm: "rgb", "deltaE76" or "deltaE2000".

    Returns:
        Tuple of (nearest entry or None when the catalog is empty, distance).
        Ties keep the first entry in catalog order.
    """
    if len(index) == 0:
        return None, float("inf")

    target = np.asarray(rgb[:3], dtype=np.float64)
    if algorithm == "rgb":
        dists = rgb_distance(index.rgb, target)
    elif algorithm == "deltaE76":
        dists = delta_e_76(index.lab, rgb_to_lab(target))
    else:
        dists = delta_e_2000(rgb_to_lab(target), index.lab)

    best = int(np.argmin(dists))
    return index.entries[best], float(dists[best])


def prioritize_refs(
    refs: Sequence[BeadRef], priority_brands: Sequence[str]
) -> Tuple[BeadRef, ...]:
    """Reorder refs so preferred brands come first, in preference order.

    Refs of other brands keep their relative order after the preferred ones.
    """
    rank = {brand: i for i, brand in reversed(list(enumerate(priority_brands)))}
    return tuple(
        sorted(
            refs,
            key=lambda ref: (0, rank[ref.brand]) if ref.brand in rank else (1, 0),
        )
    )


def match_palette(
    palette: Sequence[PaletteEntry],
    catalogs: Optional[BeadCatalogs],
    config: Config,
) -> Tuple[List[PaletteEntry], Optional[BeadAnalysis]]:
    """Attach bead matches to palette entries.

    In "system" mode entries are matched against the patched system
    catalog and flagged missing beyond the threshold. In "user" mode the
    user inventory is tried first; entries it cannot cover fall back to the
    patched system catalog for display and are always flagged missing.

    Args:
        palette: Quantized palette entries.
        catalogs: Catalog inputs; None behaves like empty catalogs.
        config: Configuration options.

    Returns:
        Tuple of (annotated palette, analysis or None when matching is off).
    """
    mode = config.effective_bead_mode
    if mode == "none":
        return list(palette), None

    catalogs = catalogs or BeadCatalogs()
    system = apply_patches(catalogs.system, catalogs.patches)
    if mode == "user":
        primary = CatalogIndex(catalogs.user)
        fallback = CatalogIndex(system)
        logger.debug(
            f"User mode: {len(primary)} inventory beads, "
            f"{len(fallback)} system beads for fallback"
        )
    else:
        primary = CatalogIndex(system)
        fallback = None
        logger.debug(f"System mode: {len(primary)} beads")

    algorithm = config.bead_distance_algorithm
    threshold = bead_distance_threshold(config.bead_accuracy_threshold, algorithm)

    matched: List[PaletteEntry] = []
    for entry in palette:
        bead, dist = find_best_match(entry.color, primary, algorithm)
        missing = bead is None or dist > threshold

        if missing and fallback is not None:
            bead, dist = find_best_match(entry.color, fallback, algorithm)

        if bead is None:
            matched.append(replace(entry, is_bead_missing=True))
            continue

        bead = replace(
            bead, refs=prioritize_refs(bead.refs, config.bead_priority_brands)
        )
        matched.append(
            replace(
                entry,
                matched_bead=bead,
                bead_delta_e=dist,
                is_bead_missing=missing,
            )
        )

    analysis = analyze_beads(matched, len(primary))
    logger.debug(
        f"Bead analysis: accuracy={analysis.accuracy}%, "
        f"missing={analysis.missing_count}"
    )
    return matched, analysis


def analyze_beads(
    palette: Sequence[PaletteEntry], total_beads_in_scope: int
) -> BeadAnalysis:
    """Summarize how much of a matched palette the catalog covers.

    An empty palette counts as fully covered.
    """
    total = len(palette)
    missing = [entry for entry in palette if entry.is_bead_missing]

    missing_refs: List[str] = []
    for entry in missing:
        if entry.matched_bead is None or not entry.matched_bead.refs:
            continue
        ref = entry.matched_bead.refs[0]
        key = f"{ref.brand}:{ref.code}"
        if key not in missing_refs:
            missing_refs.append(key)

    accuracy = 100
    if total:
        accuracy = round_half_up((total - len(missing)) / total * 100)

    return BeadAnalysis(
        accuracy=accuracy,
        missing_count=len(missing),
        missing_refs=missing_refs,
        total_beads_in_scope=total_beads_in_scope,
    )
