"""
Feature popup content.

Property values coming from the map data are normalized with ``fix_field``
before being formatted against the map's field spec. Values are sanitized
with bleach since they end up in an HTML fragment.
"""

import math
from collections.abc import Mapping, Sequence
from typing import Any

import bleach

from lode.models.map_definition import FieldSpec

# Statistical suppression / not-available markers found in the source tables
SUPPRESSION_MARKERS = frozenset({"..", "...", "x", "X", "F"})


def fix_field(name: str, value: Any) -> Any:
    """Normalize one property value: trim strings, parse numbers, map markers to None."""
    if not isinstance(value, str):
        return value

    text = value.strip()
    if not text or text in SUPPRESSION_MARKERS:
        return None

    # Identifiers such as "2410" or "0101" keep their leading zeros
    lowered = name.lower()
    if lowered == "id" or lowered.endswith(("_id", "uid", "code")):
        return text

    try:
        number = float(text.replace(",", ""))
    except ValueError:
        return text
    if not math.isfinite(number):
        return text
    return int(number) if number.is_integer() and "." not in text else number


def normalize_properties(properties: Mapping[str, Any]) -> dict[str, Any]:
    return {name: fix_field(name, value) for name, value in properties.items()}


def format_value(value: Any, field: FieldSpec, not_available: str) -> str:
    if value is None:
        return not_available
    if field.type == "number" and isinstance(value, int | float):
        return f"{value:,}"
    if field.type == "percent" and isinstance(value, int | float):
        return f"{value:.1f} %"
    if field.type == "currency" and isinstance(value, int | float):
        return f"${value:,.0f}"
    return str(value)


def htmlize(
    properties: Mapping[str, Any], fields: Sequence[FieldSpec], not_available: str
) -> str:
    """Build the popup HTML fragment, one row per configured field."""
    rows = []
    for field in fields:
        label = bleach.clean(field.label, tags=set(), strip=True)
        value = bleach.clean(
            format_value(properties.get(field.id), field, not_available), tags=set(), strip=True
        )
        rows.append(
            "<li class='popup-field'>"
            f"<span class='popup-label'>{label}</span>"
            f"<span class='popup-value'>{value}</span>"
            "</li>"
        )
    return f"<ul class='popup-content'>{''.join(rows)}</ul>"
