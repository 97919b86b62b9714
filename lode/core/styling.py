"""
Styling directive computation.

``compute_styling_directive`` is a pure function of the legend entries and
the global opacity, so replaying the same state always yields an equal
directive. Disabled entries are kept as fully transparent rules: omitting
them would leave previously colored features with a stale style.
"""

from collections.abc import Sequence

from lode.core.legend import LegendEntry
from lode.models.search import SearchItem
from lode.models.styling import TRANSPARENT, RGBA, StyleRule, StylingDirective


def compute_styling_directive(
    entries: Sequence[LegendEntry], opacity: float
) -> StylingDirective:
    """Ordered ``(filter, color, alpha)`` rules for the legend state at ``opacity``."""
    opacity = min(max(float(opacity), 0.0), 1.0)
    rules = []
    for entry in entries:
        r, g, b, a = entry.color
        alpha = round(a * opacity, 6) if entry.enabled else 0.0
        rules.append(StyleRule(filter=entry.value, color=(r, g, b), alpha=alpha))
    return StylingDirective(rules=tuple(rules))


def build_search_directive(item: SearchItem, field: str, color: RGBA) -> StylingDirective:
    """Two-rule directive highlighting ``item`` and hiding every other feature."""
    r, g, b, a = color
    # Search ids are strings; feature ids may be numeric in the source data
    highlight = StyleRule(
        filter=["==", ["to-string", ["get", field]], item.id], color=(r, g, b), alpha=a
    )
    tr, tg, tb, ta = TRANSPARENT
    fallback = StyleRule(filter=None, color=(tr, tg, tb), alpha=ta)
    return StylingDirective(rules=(highlight, fallback))
