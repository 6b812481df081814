"""
Structural region detection with heuristic fallback.

The detector runs the element type's OpenCV pipeline on the page image and
falls back to the heuristic template when vision is unavailable, the
pipeline raises, or no candidate qualifies. It never raises to the caller.
"""

import logging
from typing import Dict, Optional, Union

import numpy as np
from PIL import Image

from ..config import DetectionConfig
from .descriptor import ElementDescriptor, ElementType
from .errors import OperationTimeout
from .regions import CropRect, RegionStrategy, build_strategies
from .timeouts import run_with_timeout
from .vision import VisionEngine, to_bgr_array

logger = logging.getLogger(__name__)


class StructuralRegionDetector:
    """
    Locate a described element on a page image.

    Args:
        engine: Vision capability handle; VisionEngine.unavailable(...)
            forces the heuristic path
        config: Detection parameters shared by all strategies
        init_timeout: Deadline (seconds) for bringing the engine up
    """

    def __init__(
        self,
        engine: Optional[VisionEngine] = None,
        config: Optional[DetectionConfig] = None,
        init_timeout: Optional[float] = 5.0
    ):
        self.config = config or DetectionConfig()
        if engine is None:
            engine = (
                VisionEngine.load() if self.config.enabled
                else VisionEngine.unavailable("structural detection disabled")
            )
        self.engine = engine
        self.init_timeout = init_timeout
        self.strategies: Dict[ElementType, RegionStrategy] = build_strategies(self.config)

    def strategy_for(self, descriptor: ElementDescriptor) -> RegionStrategy:
        return self.strategies.get(
            descriptor.element_type, self.strategies[ElementType.UNKNOWN]
        )

    def _engine_ready(self) -> bool:
        try:
            return run_with_timeout(
                lambda: self.engine.available,
                self.init_timeout,
                name="vision engine initialization"
            )
        except OperationTimeout:
            return False

    def detect(
        self,
        image: Union[Image.Image, np.ndarray],
        descriptor: ElementDescriptor
    ) -> CropRect:
        """
        Best-fit rectangle for the described element.

        Args:
            image: Page image (Pillow RGB image or BGR array)
            descriptor: Parsed description

        Returns:
            CropRect from the structural pipeline, or the heuristic estimate
        """
        if isinstance(image, Image.Image):
            width, height = image.size
        else:
            height, width = image.shape[:2]

        strategy = self.strategy_for(descriptor)

        if not self._engine_ready():
            # repr() does not wait on a loader that is still running
            logger.debug(f"{self.engine!r}; heuristic region for {descriptor}")
            return strategy.estimate(width, height, descriptor)

        try:
            pixels = to_bgr_array(image) if isinstance(image, Image.Image) else image
            found = strategy.detect(self.engine.cv, pixels, descriptor.position)
        except Exception as e:
            logger.warning(
                f"Computer vision {strategy.name} detection failed, "
                f"falling back to heuristic method: {e}"
            )
            found = None
        else:
            if found is None:
                logger.debug(f"No {strategy.name} candidate found; using heuristic region")

        if found is None:
            return strategy.estimate(width, height, descriptor)

        logger.info(f"Detected {strategy.name} region {found.to_tuple()}")
        return found
