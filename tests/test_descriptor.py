"""
Tests for description parsing.
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from docpack.utils.descriptor import (
    ElementDescriptor,
    ElementType,
    Position,
    SizeHint,
    parse_description,
)


class TestElementType:
    """Tests for element type detection."""

    @pytest.mark.parametrize("description,expected", [
        ("Bar chart of quarterly sales", ElementType.CHART),
        ("line graph", ElementType.CHART),
        ("company icon", ElementType.ICON),
        ("warning symbol", ElementType.ICON),
        ("picture of a bridge", ElementType.PICTURE),
        ("photo of the team", ElementType.PICTURE),
        ("pricing table", ElementType.TABLE),
        ("handwritten signature", ElementType.HANDWRITTEN),
        ("margin note", ElementType.HANDWRITTEN),
        ("decorative border", ElementType.UNKNOWN),
    ])
    def test_keywords(self, description, expected):
        """Test each keyword family."""
        assert parse_description(description).element_type == expected

    def test_case_insensitive(self):
        """Test that matching ignores case."""
        descriptor = parse_description("LARGE GRAPH")
        assert descriptor.element_type == ElementType.CHART
        assert descriptor.size_hint == SizeHint.LARGE

    def test_first_family_wins(self):
        """Test that chart keywords take precedence over later families."""
        assert parse_description("table with a chart").element_type == ElementType.CHART
        assert parse_description("photo next to a table").element_type == ElementType.PICTURE

    def test_substring_match(self):
        """Test substring semantics ("graphic" contains "graph")."""
        assert parse_description("graphic").element_type == ElementType.CHART


class TestPosition:
    """Tests for position flags."""

    def test_corner(self):
        """Test combined flags."""
        position = parse_description("small icon top-left").position
        assert position.top and position.left
        assert not (position.bottom or position.right or position.center)

    def test_middle_means_center(self):
        """Test that "middle" sets the center flag."""
        assert parse_description("chart in the middle").position.center

    def test_contradictory_flags_kept(self):
        """Test that flags are independent."""
        position = parse_description("stretches from left to right").position
        assert position.left and position.right

    def test_no_position(self):
        """Test description without position words."""
        position = parse_description("a chart").position
        assert position.is_empty
        assert position.flags() == ()


class TestSizeHint:
    """Tests for size hints."""

    @pytest.mark.parametrize("description,expected", [
        ("small icon", SizeHint.SMALL),
        ("large photo", SizeHint.LARGE),
        ("medium table", SizeHint.MEDIUM),
        ("chart", SizeHint.NONE),
    ])
    def test_size_words(self, description, expected):
        """Test size keywords."""
        assert parse_description(description).size_hint == expected

    def test_small_checked_first(self):
        """Test precedence when several size words appear."""
        assert parse_description("small or large").size_hint == SizeHint.SMALL


class TestParseDescription:
    """Tests for parser totality."""

    @pytest.mark.parametrize("description", [None, "", "   ", "!!!", "élément"])
    def test_never_fails(self, description):
        """Test degenerate inputs."""
        descriptor = parse_description(description)
        assert descriptor == ElementDescriptor()
        assert descriptor.element_type == ElementType.UNKNOWN
        assert descriptor.size_hint == SizeHint.NONE

    def test_full_description(self):
        """Test a realistic description."""
        descriptor = parse_description(
            "Large bar chart showing Q1-Q4 sales in the top-left corner"
        )
        assert descriptor == ElementDescriptor(
            ElementType.CHART,
            Position(top=True, left=True),
            SizeHint.LARGE,
        )
        assert str(descriptor) == "chart@top-left/large"

    def test_descriptor_is_hashable(self):
        """Test that descriptors are immutable values."""
        a = parse_description("small icon top-left")
        b = parse_description("Small Icon Top-Left")
        assert a == b
        assert len({a, b}) == 1
