"""
Styling value types.

A styling directive is an ordered list of ``(filter, color, alpha)`` rules
derived from legend state and the global opacity, applied verbatim to the
render engine. The first rule whose filter matches a feature wins; a rule
without a filter matches every feature.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

RGB = tuple[int, int, int]
RGBA = tuple[int, int, int, float]

TRANSPARENT: RGBA = (255, 255, 255, 0.0)


def parse_color(value: Any) -> RGBA:
    """Normalize ``[r, g, b]``, ``[r, g, b, a]`` or ``"#rrggbb[aa]"`` to an RGBA tuple."""
    if isinstance(value, str):
        hex_value = value.lstrip("#")
        if len(hex_value) not in (6, 8):
            raise ValueError(f"Invalid hex color: {value!r}")
        channels = [int(hex_value[i : i + 2], 16) for i in range(0, len(hex_value), 2)]
        alpha = channels[3] / 255 if len(channels) == 4 else 1.0
        return channels[0], channels[1], channels[2], alpha

    if isinstance(value, list | tuple) and len(value) in (3, 4):
        r, g, b = (int(c) for c in value[:3])
        alpha = float(value[3]) if len(value) == 4 else 1.0
        if not all(0 <= c <= 255 for c in (r, g, b)) or not 0.0 <= alpha <= 1.0:
            raise ValueError(f"Color channel out of range: {value!r}")
        return r, g, b, alpha

    raise ValueError(f"Unsupported color value: {value!r}")


def to_css(color: RGB | RGBA, alpha: float | None = None) -> str:
    """Render a color as a CSS ``rgba()`` string, optionally overriding its alpha."""
    r, g, b = color[:3]
    a = alpha if alpha is not None else (color[3] if len(color) == 4 else 1.0)
    return f"rgba({r},{g},{b},{round(a, 6)})"


class StyleRule(BaseModel):
    """One classification rule of a styling directive."""

    model_config = ConfigDict(frozen=True)

    filter: Any = Field(default=None, description="Filter expression; None matches everything")
    color: RGB
    alpha: float = Field(ge=0.0, le=1.0)

    @field_validator("filter", mode="after")
    @classmethod
    def freeze_filter(cls, v: Any) -> Any:
        return _freeze(v)

    @property
    def is_fallback(self) -> bool:
        return self.filter is None

    @property
    def is_transparent(self) -> bool:
        return self.alpha == 0.0

    def css(self) -> str:
        return to_css(self.color, self.alpha)


class StylingDirective(BaseModel):
    """Ordered rules applied to one or more layers."""

    model_config = ConfigDict(frozen=True)

    rules: tuple[StyleRule, ...] = ()

    def __len__(self) -> int:
        return len(self.rules)

    def to_case_expression(self) -> list[Any]:
        """Render the directive as a render-engine ``case`` color expression."""
        expression: list[Any] = ["case"]
        fallback = to_css(TRANSPARENT)
        for rule in self.rules:
            if rule.is_fallback:
                fallback = rule.css()
                break
            expression.extend([_thaw(rule.filter), rule.css()])
        if len(expression) == 1:
            # "case" needs at least one condition
            return ["literal", fallback]
        expression.append(fallback)
        return expression


def _freeze(value: Any) -> Any:
    """Turn nested lists into tuples so rules stay hashable."""
    if isinstance(value, list | tuple):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value
