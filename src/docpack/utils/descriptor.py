"""
Parsing of free-text visual element descriptions.

The upstream extractor describes each visual element in prose, e.g.
"Large bar chart showing Q1-Q4 sales in the top-left corner". This module
reduces such a description to the three facts the region estimators use:
what kind of element it is, where on the page it sits, and how big it is.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes and Enums
# ============================================================================

class ElementType(Enum):
    """Kinds of visual elements a description can name."""
    CHART = "chart"
    ICON = "icon"
    PICTURE = "picture"
    TABLE = "table"
    HANDWRITTEN = "handwritten"
    UNKNOWN = "unknown"


class SizeHint(Enum):
    """Relative size mentioned in a description."""
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    NONE = "none"


@dataclass(frozen=True)
class Position:
    """Independent position flags; several may be set (e.g. top + right)."""
    top: bool = False
    bottom: bool = False
    left: bool = False
    right: bool = False
    center: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.top or self.bottom or self.left or self.right or self.center)

    def flags(self) -> Tuple[str, ...]:
        return tuple(
            name for name in ("top", "bottom", "left", "right", "center")
            if getattr(self, name)
        )


@dataclass(frozen=True)
class ElementDescriptor:
    """Structured form of a visual element description."""
    element_type: ElementType = ElementType.UNKNOWN
    position: Position = Position()
    size_hint: SizeHint = SizeHint.NONE

    def __str__(self) -> str:
        flags = "-".join(self.position.flags()) or "anywhere"
        return f"{self.element_type.value}@{flags}/{self.size_hint.value}"


# ============================================================================
# Keyword Tables
# ============================================================================

# Checked in order; the first family with a matching keyword wins.
TYPE_KEYWORDS = (
    (ElementType.CHART, ("chart", "graph")),
    (ElementType.ICON, ("icon", "symbol")),
    (ElementType.PICTURE, ("picture", "photo")),
    (ElementType.TABLE, ("table",)),
    (ElementType.HANDWRITTEN, ("handwritten", "note")),
)

SIZE_KEYWORDS = (
    (SizeHint.SMALL, "small"),
    (SizeHint.LARGE, "large"),
    (SizeHint.MEDIUM, "medium"),
)


# ============================================================================
# Parser
# ============================================================================

def parse_description(description: Optional[str]) -> ElementDescriptor:
    """
    Parse a free-text element description into an ElementDescriptor.

    Matching is case-insensitive and substring based, so "graphic" counts as
    a graph and "notebook" as a note. Missing keywords simply leave the
    defaults in place; this function never fails.

    Args:
        description: Free text from an [IMAGE_CROP_NEEDED: ...] tag

    Returns:
        ElementDescriptor with type, position flags and size hint
    """
    text = (description or "").lower()

    element_type = ElementType.UNKNOWN
    for candidate, keywords in TYPE_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            element_type = candidate
            break

    position = Position(
        top="top" in text,
        bottom="bottom" in text,
        left="left" in text,
        right="right" in text,
        center="center" in text or "middle" in text,
    )

    size_hint = SizeHint.NONE
    for candidate, keyword in SIZE_KEYWORDS:
        if keyword in text:
            size_hint = candidate
            break

    descriptor = ElementDescriptor(element_type, position, size_hint)
    logger.debug(f"Parsed {description!r} -> {descriptor}")
    return descriptor
