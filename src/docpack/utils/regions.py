"""
Region strategies for locating visual elements on a page image.

Each element type has one strategy object implementing two operations:

- estimate(): a pure heuristic rectangle from the image size and the
  description's position/size hints. Total for any image of at least 1x1.
- detect(): a classical OpenCV pipeline that looks for the element in the
  pixels and returns its bounding box, or None if nothing qualifies.

Strategies are selected by ElementType through STRATEGIES. The structural
detector in detector.py drives detect() and falls back to estimate().
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from ..config import DetectionConfig
from .descriptor import ElementDescriptor, ElementType, Position, SizeHint
from .vision import to_grayscale

logger = logging.getLogger(__name__)


# ============================================================================
# Crop Rectangle
# ============================================================================

@dataclass(frozen=True)
class CropRect:
    """Crop rectangle in pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    def to_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)

    def union(self, other: "CropRect") -> "CropRect":
        x1 = min(self.x, other.x)
        y1 = min(self.y, other.y)
        x2 = max(self.x + self.width, other.x + other.width)
        y2 = max(self.y + self.height, other.y + other.height)
        return CropRect(x1, y1, x2 - x1, y2 - y1)

    def fits_within(self, image_width: int, image_height: int) -> bool:
        return (
            self.x >= 0 and self.y >= 0
            and self.width >= 1 and self.height >= 1
            and self.x + self.width <= image_width
            and self.y + self.height <= image_height
        )


def clamp_rect(rect: CropRect, image_width: int, image_height: int) -> CropRect:
    """
    Clamp a rectangle from any detector into the image.

    x' = clamp(x, 0, W - w), y' = clamp(y, 0, H - h),
    w' = min(w, W - x'), h' = min(h, H - y'). Width and height are first
    limited to [1, W] and [1, H] so the result is never empty.
    """
    if image_width < 1 or image_height < 1:
        raise ValueError(f"Invalid image size: {image_width}x{image_height}")

    width = max(1, min(int(rect.width), image_width))
    height = max(1, min(int(rect.height), image_height))

    x = max(0, min(int(rect.x), image_width - width))
    y = max(0, min(int(rect.y), image_height - height))

    width = min(width, image_width - x)
    height = min(height, image_height - y)

    return CropRect(x, y, width, height)


# ============================================================================
# Position Resolution
# ============================================================================

# Scale applied to a template's width/height fractions
SIZE_SCALE = {
    SizeHint.SMALL: 0.6,
    SizeHint.MEDIUM: 1.0,
    SizeHint.LARGE: 1.4,
    SizeHint.NONE: 1.0,
}


def place_on_axis(
    extent: int,
    size: int,
    near: bool,
    far: bool,
    center: bool,
    default: Optional[float]
) -> int:
    """
    Offset of a span of ``size`` along an axis of length ``extent``.

    Priority: far edge (right/bottom), near edge (left/top), center, then the
    type default (a fraction of the extent; None means centered).
    """
    if far:
        return extent - size
    if near:
        return 0
    if center or default is None:
        return (extent - size) // 2
    return min(int(extent * default), extent - size)


def snap_to_position(
    rect: CropRect,
    image_width: int,
    image_height: int,
    position: Position
) -> CropRect:
    """
    Move a detected rectangle to the edges named in the description.

    Explicit edges win; with only "center" (or nothing) the detected location
    is kept, since it is where the element actually is.
    """
    x, y = rect.x, rect.y

    if position.right:
        x = image_width - rect.width
    elif position.left:
        x = 0

    if position.bottom:
        y = image_height - rect.height
    elif position.top:
        y = 0

    return CropRect(x, y, rect.width, rect.height)


def _find_external_boxes(cv: Any, binary: np.ndarray) -> List[Tuple[Any, CropRect]]:
    """External contours of a binary image with their bounding boxes."""
    contours, _ = cv.findContours(binary, cv.RETR_EXTERNAL, cv.CHAIN_APPROX_SIMPLE)
    boxes = []
    for contour in contours:
        x, y, w, h = cv.boundingRect(contour)
        boxes.append((contour, CropRect(int(x), int(y), int(w), int(h))))
    return boxes


# ============================================================================
# Strategy Base Class
# ============================================================================

class RegionStrategy:
    """
    Heuristic template plus structural detector for one element type.

    Subclasses set the template fractions and default placement, and
    implement _find() with their OpenCV pipeline.
    """

    element_type: ElementType = ElementType.UNKNOWN
    width_fraction: float = 0.5
    height_fraction: float = 0.5
    # Default placement as a fraction of the frame; None = centered
    default_x: Optional[float] = None
    default_y: Optional[float] = None

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()

    @property
    def name(self) -> str:
        return self.element_type.value

    def template_size(
        self,
        image_width: int,
        image_height: int,
        size_hint: SizeHint
    ) -> Tuple[int, int]:
        scale = SIZE_SCALE.get(size_hint, 1.0)
        w_frac = min(1.0, self.width_fraction * scale)
        h_frac = min(1.0, self.height_fraction * scale)
        width = max(1, int(image_width * w_frac))
        height = max(1, int(image_height * h_frac))
        return width, height

    def estimate(
        self,
        image_width: int,
        image_height: int,
        descriptor: ElementDescriptor
    ) -> CropRect:
        """
        Heuristic crop rectangle from the image size and description only.

        Args:
            image_width: Source width in pixels (>= 1)
            image_height: Source height in pixels (>= 1)
            descriptor: Parsed description

        Returns:
            CropRect inside the image
        """
        image_width = max(1, int(image_width))
        image_height = max(1, int(image_height))
        width, height = self.template_size(image_width, image_height, descriptor.size_hint)
        position = descriptor.position

        x = place_on_axis(
            image_width, width,
            near=position.left, far=position.right,
            center=position.center, default=self.default_x
        )
        y = place_on_axis(
            image_height, height,
            near=position.top, far=position.bottom,
            center=position.center, default=self.default_y
        )

        return CropRect(max(0, x), max(0, y), width, height)

    def detect(
        self,
        cv: Any,
        image: np.ndarray,
        position: Position
    ) -> Optional[CropRect]:
        """
        Find the element in a BGR image and snap it to the described edges.

        Args:
            cv: OpenCV module
            image: Page image as a BGR (or grayscale) array
            position: Position flags from the description

        Returns:
            CropRect, or None if no candidate passes the filters
        """
        h, w = image.shape[:2]
        if h < 2 or w < 2:
            return None

        found = self._find(cv, image)
        if found is None:
            return None

        logger.debug(f"{self.name} candidate at {found.to_tuple()}")
        return snap_to_position(found, w, h, position)

    def _find(self, cv: Any, image: np.ndarray) -> Optional[CropRect]:
        return None

    def _edge_boxes(self, cv: Any, image: np.ndarray) -> List[Tuple[Any, CropRect]]:
        gray = to_grayscale(cv, image)
        edges = cv.Canny(gray, self.config.canny_low, self.config.canny_high)
        return _find_external_boxes(cv, edges)


# ============================================================================
# Strategies
# ============================================================================

class ChartStrategy(RegionStrategy):
    """Charts are large and usually wider than tall."""

    element_type = ElementType.CHART
    width_fraction = 0.6
    height_fraction = 0.4

    def _find(self, cv: Any, image: np.ndarray) -> Optional[CropRect]:
        h, w = image.shape[:2]
        min_w, min_h = self.config.chart_min_size

        best = None
        for _, rect in self._edge_boxes(cv, image):
            if rect.width > w * min_w and rect.height > h * min_h:
                if best is None or rect.area > best.area:
                    best = rect
        return best


class IconStrategy(RegionStrategy):
    """Icons are small, compact shapes, by default near the top-left."""

    element_type = ElementType.ICON
    width_fraction = 0.15
    height_fraction = 0.15
    default_x = 0.1
    default_y = 0.1

    def template_size(
        self,
        image_width: int,
        image_height: int,
        size_hint: SizeHint
    ) -> Tuple[int, int]:
        # Square, relative to the shorter side
        scale = SIZE_SCALE.get(size_hint, 1.0)
        side = int(min(image_width, image_height) * min(1.0, self.width_fraction * scale))
        side = max(1, side)
        return side, side

    def _find(self, cv: Any, image: np.ndarray) -> Optional[CropRect]:
        h, w = image.shape[:2]
        max_w, max_h = self.config.icon_max_size

        best = None
        best_score = 0.0
        for contour, rect in self._edge_boxes(cv, image):
            if rect.width < w * max_w and rect.height < h * max_h:
                perimeter = cv.arcLength(contour, True)
                if perimeter <= 0:
                    continue
                area = rect.area
                compactness = (4 * math.pi * area) / (perimeter * perimeter)
                score = compactness * area
                if score > best_score:
                    best_score = score
                    best = rect
        return best


class PictureStrategy(RegionStrategy):
    """Photographs stand out by color saturation against flat backgrounds."""

    element_type = ElementType.PICTURE
    width_fraction = 0.5
    height_fraction = 0.5

    def _find(self, cv: Any, image: np.ndarray) -> Optional[CropRect]:
        if len(image.shape) != 3:
            return None  # no color information

        h, w = image.shape[:2]
        min_w, min_h = self.config.picture_min_size

        hsv = cv.cvtColor(image[:, :, :3], cv.COLOR_BGR2HSV)
        saturation = hsv[:, :, 1]

        k = self.config.saturation_blur | 1  # kernel size must be odd
        blurred = cv.GaussianBlur(saturation, (k, k), 0)
        _, thresholded = cv.threshold(
            blurred, self.config.saturation_threshold, 255, cv.THRESH_BINARY
        )

        best = None
        for _, rect in _find_external_boxes(cv, thresholded):
            if rect.width > w * min_w and rect.height > h * min_h:
                if best is None or rect.area > best.area:
                    best = rect
        return best


class TableStrategy(RegionStrategy):
    """Tables are wide grids of long horizontal and vertical rules."""

    element_type = ElementType.TABLE
    width_fraction = 0.7
    height_fraction = 0.3

    def _find(self, cv: Any, image: np.ndarray) -> Optional[CropRect]:
        h, w = image.shape[:2]
        min_w, min_h = self.config.table_min_size
        gray = to_grayscale(cv, image)

        # Inverted so ink (rules, text) is foreground
        block = max(3, self.config.adaptive_block_size | 1)
        binary = cv.adaptiveThreshold(
            gray, 255, cv.ADAPTIVE_THRESH_GAUSSIAN_C, cv.THRESH_BINARY_INV,
            block, self.config.adaptive_c
        )
        kernel = np.ones((3, 3), np.uint8)
        closed = cv.morphologyEx(binary, cv.MORPH_CLOSE, kernel)

        length = self.config.line_kernel_length
        horizontal_kernel = cv.getStructuringElement(cv.MORPH_RECT, (length, 1))
        vertical_kernel = cv.getStructuringElement(cv.MORPH_RECT, (1, length))

        horizontal = cv.dilate(cv.erode(closed, horizontal_kernel), horizontal_kernel)
        vertical = cv.dilate(cv.erode(closed, vertical_kernel), vertical_kernel)
        lines = cv.add(horizontal, vertical)

        best = None
        best_density = 0.0
        for _, rect in _find_external_boxes(cv, lines):
            if rect.width > w * min_w and rect.height > h * min_h:
                region = lines[rect.y:rect.y + rect.height, rect.x:rect.x + rect.width]
                density = cv.countNonZero(region) / float(rect.area)
                if density > best_density:
                    best_density = density
                    best = rect
        return best


class HandwrittenStrategy(RegionStrategy):
    """Handwritten notes are clusters of small strokes, often in a margin."""

    element_type = ElementType.HANDWRITTEN
    width_fraction = 0.4
    height_fraction = 0.2
    default_x = 0.6
    default_y = 0.7

    def _find(self, cv: Any, image: np.ndarray) -> Optional[CropRect]:
        h, w = image.shape[:2]
        max_w, max_h = self.config.handwriting_max_size
        gray = to_grayscale(cv, image)

        kernel = np.ones((3, 3), np.uint8)
        gradient = cv.morphologyEx(gray, cv.MORPH_GRADIENT, kernel)
        # Stroke edges carry a strong gradient; keep them as foreground
        _, strokes = cv.threshold(
            gradient, self.config.gradient_threshold, 255, cv.THRESH_BINARY
        )

        regions = [
            rect for _, rect in _find_external_boxes(cv, strokes)
            if rect.width < w * max_w and rect.height < h * max_h
        ]

        clusters = cluster_regions(regions, self.config.cluster_distance_factor)
        if not clusters:
            return None
        return max(clusters, key=lambda c: c.area)


class DefaultStrategy(RegionStrategy):
    """Unknown elements: half the page, no structural detection."""

    element_type = ElementType.UNKNOWN
    width_fraction = 0.5
    height_fraction = 0.5


def cluster_regions(regions: List[CropRect], distance_factor: float = 3.0) -> List[CropRect]:
    """
    Greedily group nearby regions into clusters.

    Each region joins the first cluster whose center lies within
    ``distance_factor`` times the region's larger dimension, expanding that
    cluster's box; otherwise it starts a new cluster.
    """
    clusters: List[CropRect] = []
    for region in regions:
        cx, cy = region.center
        reach = max(region.width, region.height) * distance_factor

        for i, cluster in enumerate(clusters):
            kx, ky = cluster.center
            if math.hypot(cx - kx, cy - ky) < reach:
                clusters[i] = cluster.union(region)
                break
        else:
            clusters.append(region)

    return clusters


# ============================================================================
# Dispatch
# ============================================================================

STRATEGY_CLASSES = {
    ElementType.CHART: ChartStrategy,
    ElementType.ICON: IconStrategy,
    ElementType.PICTURE: PictureStrategy,
    ElementType.TABLE: TableStrategy,
    ElementType.HANDWRITTEN: HandwrittenStrategy,
    ElementType.UNKNOWN: DefaultStrategy,
}


def build_strategies(config: Optional[DetectionConfig] = None) -> Dict[ElementType, RegionStrategy]:
    """One strategy instance per element type, sharing a detection config."""
    config = config or DetectionConfig()
    return {element_type: cls(config) for element_type, cls in STRATEGY_CLASSES.items()}


STRATEGIES = build_strategies()


def get_strategy(element_type: ElementType) -> RegionStrategy:
    return STRATEGIES.get(element_type, STRATEGIES[ElementType.UNKNOWN])


def estimate_region(
    image_width: int,
    image_height: int,
    descriptor: ElementDescriptor
) -> CropRect:
    """
    Heuristic region for a descriptor; never fails for image sizes >= 1.

    Args:
        image_width: Source width in pixels
        image_height: Source height in pixels
        descriptor: Parsed description

    Returns:
        CropRect inside the image
    """
    return get_strategy(descriptor.element_type).estimate(
        image_width, image_height, descriptor
    )
