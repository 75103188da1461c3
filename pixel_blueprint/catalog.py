"""Bead catalog construction, patching and loading."""
from __future__ import annotations

import datetime as dt
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .color import lab_of
from .config import CatalogError

logger = logging.getLogger("pixel_blueprint")

_HEX_RE = re.compile(r"^#([0-9A-F]{3}|[0-9A-F]{6})$")
_RGB_RE = re.compile(r"\d+")


@dataclass(frozen=True)
class BeadRef:
    """A (brand, code) pair naming one physical bead."""

    brand: str
    code: str


@dataclass(frozen=True)
class BeadCatalogEntry:
    """One physical bead color shared by one or more brand codes."""

    hex: str
    rgb: Tuple[int, int, int]
    lab: Tuple[float, float, float]
    refs: Tuple[BeadRef, ...]


# normalized hex -> entry, in insertion order
Catalog = Dict[str, BeadCatalogEntry]
# brand -> code -> color
BrandMap = Mapping[str, Mapping[Any, Any]]


@dataclass
class CatalogDocument:
    """Parsed bead catalog document."""

    meta: Dict[str, str]
    brands: Dict[str, Dict[str, str]]
    patch_brands: Dict[str, Dict[str, str]] = field(default_factory=dict)


@dataclass
class BeadCatalogs:
    """Catalog inputs for bead matching."""

    system: Catalog = field(default_factory=dict)
    user: Catalog = field(default_factory=dict)
    patches: Dict[str, Dict[str, str]] = field(default_factory=dict)


def normalize_hex(value: Any) -> Optional[str]:
    """Normalize a color value to upper-case #RRGGBB.

    Accepts #RGB, #RRGGBB and rgb(r, g, b). Hex digits without the
    leading # are rejected.

    Returns:
        Normalized hex string, or None if the value is not a color.
    """
    text = str(value).strip()
    if text.lower().startswith("rgb"):
        parts = _RGB_RE.findall(text)
        if len(parts) < 3:
            return None
        channels = [int(p) for p in parts[:3]]
        if any(c > 255 for c in channels):
            return None
        return "#" + "".join(f"{c:02X}" for c in channels)

    text = text.upper()
    match = _HEX_RE.match(text)
    if not match:
        return None
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return "#" + digits


def _new_entry(hex_value: str, refs: Tuple[BeadRef, ...] = ()) -> BeadCatalogEntry:
    rgb = (
        int(hex_value[1:3], 16),
        int(hex_value[3:5], 16),
        int(hex_value[5:7], 16),
    )
    return BeadCatalogEntry(hex=hex_value, rgb=rgb, lab=lab_of(*rgb), refs=refs)


def build_catalog(brands: BrandMap) -> Catalog:
    """Flatten a brand -> code -> color mapping into a catalog.

    Codes sharing a color are grouped under one entry, in document order.
    Malformed colors and brand bodies are skipped individually.

    Args:
        brands: Mapping of brand name to {code: color}.

    Returns:
        Catalog keyed by normalized hex.
    """
    catalog: Catalog = {}
    if not brands:
        return catalog

    for brand, colors in brands.items():
        if not isinstance(colors, Mapping):
            logger.debug(f"Skipping brand {brand!r}: not a mapping")
            continue
        for code, value in colors.items():
            if value is None or value == "":
                continue
            hex_value = normalize_hex(value)
            if hex_value is None:
                logger.debug(f"Skipping {brand}:{code}: invalid color {value!r}")
                continue
            ref = BeadRef(brand=str(brand), code=str(code))
            entry = catalog.get(hex_value)
            if entry is None:
                catalog[hex_value] = _new_entry(hex_value, (ref,))
            else:
                catalog[hex_value] = replace(entry, refs=entry.refs + (ref,))
    return catalog


def apply_patches(catalog: Catalog, patches: BrandMap) -> Catalog:
    """Move brand codes to corrected colors.

    For every patched (brand, code), the ref is removed from whichever entry
    holds it (dropping the entry once empty) and added under the new color.

    Args:
        catalog: Catalog to patch; not modified.
        patches: Mapping of brand -> code -> new color.

    Returns:
        Patched catalog.
    """
    patched: Catalog = dict(catalog)
    if not patches:
        return patched

    for brand, codes in patches.items():
        if not isinstance(codes, Mapping):
            continue
        for code, raw in codes.items():
            new_hex = normalize_hex(raw)
            if new_hex is None:
                logger.debug(f"Skipping patch {brand}:{code}: invalid color {raw!r}")
                continue
            ref = BeadRef(brand=str(brand), code=str(code))

            holder = next(
                (h for h, entry in patched.items() if ref in entry.refs), None
            )
            if holder is not None:
                entry = patched[holder]
                remaining = tuple(r for r in entry.refs if r != ref)
                if remaining:
                    patched[holder] = replace(entry, refs=remaining)
                else:
                    del patched[holder]

            target = patched.get(new_hex)
            if target is None:
                patched[new_hex] = _new_entry(new_hex, (ref,))
            elif ref not in target.refs:
                patched[new_hex] = replace(target, refs=target.refs + (ref,))
    return patched


def catalog_brands(catalog: Catalog) -> List[str]:
    """Sorted list of brands present in a catalog."""
    return sorted({ref.brand for entry in catalog.values() for ref in entry.refs})


def _string_map(data: Any) -> Dict[str, Dict[str, str]]:
    if not isinstance(data, Mapping):
        return {}
    result: Dict[str, Dict[str, str]] = {}
    for brand, colors in data.items():
        if isinstance(colors, Mapping):
            result[str(brand)] = {str(code): value for code, value in colors.items()}
    return result


def parse_catalog_document(text: str) -> CatalogDocument:
    """Parse a YAML bead catalog document.

    System catalogs list colors under ``brands``, user inventories under
    ``has_brands``; either may carry ``patch_brands`` corrections.

    Args:
        text: YAML document text.

    Returns:
        Parsed document with defaulted meta.

    Raises:
        CatalogError: If the YAML is invalid or not a mapping.
    """
    try:
        parsed = yaml.safe_load(text.lstrip("\ufeff"))
    except yaml.YAMLError as exc:
        raise CatalogError(f"Invalid catalog YAML: {exc}") from exc

    if not isinstance(parsed, Mapping):
        raise CatalogError("Catalog document is not a mapping")

    raw_meta = parsed.get("meta")
    meta: Dict[str, str] = {}
    if isinstance(raw_meta, Mapping):
        meta = {str(k): v for k, v in raw_meta.items()}
    if not meta.get("name"):
        meta["name"] = "Untitled Palette"
    updated_at = meta.get("updated_at")
    if isinstance(updated_at, (dt.date, dt.datetime)):
        meta["updated_at"] = updated_at.isoformat()
    elif not updated_at:
        meta["updated_at"] = dt.datetime.now(dt.timezone.utc).isoformat()

    brands = parsed.get("has_brands") or parsed.get("brands") or {}
    return CatalogDocument(
        meta=meta,
        brands=_string_map(brands),
        patch_brands=_string_map(parsed.get("patch_brands")),
    )


def load_catalog_document(path: str) -> CatalogDocument:
    """Load a YAML bead catalog document from disk.

    Raises:
        CatalogError: If the file cannot be read or parsed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except OSError as exc:
        raise CatalogError(f"Cannot read catalog {path}: {exc}") from exc
    return parse_catalog_document(text)


def catalogs_from_documents(
    system_doc: Optional[CatalogDocument],
    user_doc: Optional[CatalogDocument] = None,
) -> BeadCatalogs:
    """Build matching inputs from system and user documents.

    Patches come from the user document when present, otherwise from the
    system document.
    """
    patches: Dict[str, Dict[str, str]] = {}
    if system_doc is not None:
        patches = dict(system_doc.patch_brands)
    if user_doc is not None and user_doc.patch_brands:
        patches = dict(user_doc.patch_brands)
    return BeadCatalogs(
        system=build_catalog(system_doc.brands) if system_doc else {},
        user=build_catalog(user_doc.brands) if user_doc else {},
        patches=patches,
    )
