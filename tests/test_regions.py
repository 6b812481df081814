"""
Tests for crop rectangles, clamping and heuristic region estimation.
"""

import itertools
import random

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from docpack.utils.descriptor import ElementDescriptor, ElementType, Position, SizeHint
from docpack.utils.regions import (
    CropRect,
    DefaultStrategy,
    STRATEGIES,
    TableStrategy,
    clamp_rect,
    cluster_regions,
    estimate_region,
    get_strategy,
    place_on_axis,
    snap_to_position,
)


def all_positions():
    for flags in itertools.product([False, True], repeat=5):
        yield Position(*flags)


def all_descriptors():
    for element_type in ElementType:
        for position in all_positions():
            for size_hint in SizeHint:
                yield ElementDescriptor(element_type, position, size_hint)


class TestCropRect:
    """Tests for CropRect."""

    def test_union(self):
        """Test bounding union of two rectangles."""
        merged = CropRect(10, 10, 20, 20).union(CropRect(25, 5, 10, 10))
        assert merged == CropRect(10, 5, 25, 25)

    def test_center_and_area(self):
        """Test derived values."""
        rect = CropRect(10, 20, 40, 10)
        assert rect.center == (30.0, 25.0)
        assert rect.area == 400

    def test_fits_within(self):
        """Test containment check."""
        assert CropRect(0, 0, 100, 50).fits_within(100, 50)
        assert not CropRect(1, 0, 100, 50).fits_within(100, 50)
        assert not CropRect(0, 0, 0, 50).fits_within(100, 50)


class TestClampRect:
    """Tests for clamping detector output into the image."""

    def test_negative_origin(self):
        """Test shifting a rectangle that starts outside."""
        assert clamp_rect(CropRect(-10, -10, 50, 50), 100, 100) == CropRect(0, 0, 50, 50)

    def test_overhanging_rect_is_shifted(self):
        """Test that a rectangle hanging off the far edge moves back in."""
        assert clamp_rect(CropRect(90, 90, 50, 50), 100, 100) == CropRect(50, 50, 50, 50)

    def test_oversized_rect(self):
        """Test a rectangle larger than the image."""
        assert clamp_rect(CropRect(0, 0, 500, 500), 100, 80) == CropRect(0, 0, 100, 80)

    def test_empty_rect_gets_minimum_size(self):
        """Test zero and negative sizes."""
        rect = clamp_rect(CropRect(10, 10, 0, -5), 100, 100)
        assert rect.width == 1
        assert rect.height == 1

    def test_rejects_empty_image(self):
        """Test invalid image dimensions."""
        with pytest.raises(ValueError):
            clamp_rect(CropRect(0, 0, 10, 10), 0, 10)

    def test_invariant_over_grid(self):
        """Test the containment invariant over many rectangles and sizes."""
        sizes = [1, 2, 7, 100, 641]
        coords = [-1000, -1, 0, 1, 3, 99, 640, 5000]
        extents = [-5, 0, 1, 2, 50, 640, 10000]

        for W, H in itertools.product(sizes, sizes):
            for x, y in itertools.product(coords, coords):
                for w, h in itertools.product(extents, extents):
                    rect = clamp_rect(CropRect(x, y, w, h), W, H)
                    assert rect.fits_within(W, H), (W, H, x, y, w, h, rect)

    def test_rect_inside_is_unchanged(self):
        """Test that valid rectangles pass through."""
        rect = CropRect(5, 6, 30, 40)
        assert clamp_rect(rect, 100, 100) == rect


class TestPlacement:
    """Tests for axis placement and edge snapping."""

    def test_far_edge_wins(self):
        """Test right/bottom precedence over left/top and center."""
        assert place_on_axis(100, 30, near=True, far=True, center=True, default=None) == 70

    def test_near_edge(self):
        """Test left/top placement."""
        assert place_on_axis(100, 30, near=True, far=False, center=True, default=0.5) == 0

    def test_center(self):
        """Test centered placement."""
        assert place_on_axis(100, 30, near=False, far=False, center=True, default=0.9) == 35

    def test_default_fraction_capped(self):
        """Test that the type default never pushes the span out."""
        assert place_on_axis(100, 30, False, False, False, default=0.9) == 70
        assert place_on_axis(100, 30, False, False, False, default=0.1) == 10

    def test_snap_to_explicit_edges(self):
        """Test snapping a detected box to described edges."""
        rect = CropRect(40, 40, 20, 10)
        snapped = snap_to_position(rect, 200, 100, Position(bottom=True, right=True))
        assert snapped == CropRect(180, 90, 20, 10)

        snapped = snap_to_position(rect, 200, 100, Position(top=True, left=True))
        assert snapped == CropRect(0, 0, 20, 10)

    def test_snap_keeps_detected_location_for_center(self):
        """Test that center (or no flag) keeps the detected coordinates."""
        rect = CropRect(40, 40, 20, 10)
        assert snap_to_position(rect, 200, 100, Position(center=True)) == rect
        assert snap_to_position(rect, 200, 100, Position()) == rect


class TestEstimateRegion:
    """Tests for the heuristic estimator."""

    def test_totality(self):
        """Test that every descriptor yields a rectangle inside any image."""
        rng = random.Random(1234)
        dims = [(1, 1), (1, 5000), (5000, 1), (2, 3)]
        dims += [(rng.randint(1, 4000), rng.randint(1, 4000)) for _ in range(12)]

        descriptors = list(all_descriptors())
        for W, H in dims:
            for descriptor in descriptors:
                rect = estimate_region(W, H, descriptor)
                assert rect.fits_within(W, H), (W, H, str(descriptor), rect)

    def test_chart_template(self):
        """Test chart proportions without hints."""
        rect = estimate_region(1000, 800, ElementDescriptor(ElementType.CHART))
        assert abs(rect.width - 600) <= 1
        assert abs(rect.height - 320) <= 1
        # Centered by default
        assert abs(rect.x - 200) <= 1
        assert abs(rect.y - 240) <= 1

    def test_icon_is_square_near_top_left(self):
        """Test icon template and default placement."""
        rect = estimate_region(1000, 800, ElementDescriptor(ElementType.ICON))
        assert rect.width == rect.height
        assert abs(rect.width - 120) <= 1
        assert abs(rect.x - 100) <= 1
        assert abs(rect.y - 80) <= 1

    def test_handwritten_default_placement(self):
        """Test the lower-right default for handwriting."""
        rect = estimate_region(1000, 1000, ElementDescriptor(ElementType.HANDWRITTEN))
        assert abs(rect.x - 600) <= 1
        assert abs(rect.y - 700) <= 1

    def test_bottom_right(self):
        """Test far-edge alignment."""
        descriptor = ElementDescriptor(ElementType.TABLE, Position(bottom=True, right=True))
        rect = estimate_region(640, 480, descriptor)
        assert rect.x + rect.width == 640
        assert rect.y + rect.height == 480

    def test_top_left(self):
        """Test near-edge alignment."""
        descriptor = ElementDescriptor(ElementType.PICTURE, Position(top=True, left=True))
        rect = estimate_region(640, 480, descriptor)
        assert (rect.x, rect.y) == (0, 0)

    def test_size_hint_scales(self):
        """Test that small < none < large for every type."""
        for element_type in ElementType:
            small = estimate_region(1000, 1000, ElementDescriptor(element_type, size_hint=SizeHint.SMALL))
            none = estimate_region(1000, 1000, ElementDescriptor(element_type))
            large = estimate_region(1000, 1000, ElementDescriptor(element_type, size_hint=SizeHint.LARGE))
            assert small.area < none.area < large.area, element_type

    def test_large_never_exceeds_frame(self):
        """Test the scale cap on a tiny image."""
        descriptor = ElementDescriptor(ElementType.TABLE, size_hint=SizeHint.LARGE)
        rect = estimate_region(3, 3, descriptor)
        assert rect.fits_within(3, 3)


class TestClusterRegions:
    """Tests for greedy region clustering."""

    def test_nearby_regions_merge(self):
        """Test that close boxes form one cluster."""
        regions = [CropRect(0, 0, 10, 10), CropRect(15, 0, 10, 10), CropRect(30, 5, 10, 10)]
        clusters = cluster_regions(regions, distance_factor=3.0)
        assert clusters == [CropRect(0, 0, 40, 15)]

    def test_distant_regions_stay_apart(self):
        """Test that far boxes form separate clusters."""
        regions = [CropRect(0, 0, 10, 10), CropRect(500, 500, 10, 10)]
        assert len(cluster_regions(regions, distance_factor=3.0)) == 2

    def test_empty(self):
        """Test no regions."""
        assert cluster_regions([]) == []


class TestDispatch:
    """Tests for strategy selection."""

    def test_every_type_has_a_strategy(self):
        """Test that the dispatch table is complete."""
        for element_type in ElementType:
            assert STRATEGIES[element_type].element_type == element_type

    def test_get_strategy(self):
        """Test lookups."""
        assert isinstance(get_strategy(ElementType.TABLE), TableStrategy)
        assert isinstance(get_strategy(ElementType.UNKNOWN), DefaultStrategy)

    def test_default_strategy_never_detects(self):
        """Test that unknown elements rely on the heuristic."""
        import numpy as np
        image = np.full((50, 50, 3), 255, dtype=np.uint8)
        assert DefaultStrategy().detect(None, image, Position()) is None
