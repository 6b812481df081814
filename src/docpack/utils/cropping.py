"""
Cropping of described visual elements out of a source image.

The orchestrator decodes the source, parses the description, runs the
structural detector under a deadline, clamps the rectangle to the image and
encodes the crop as PNG. Every failure path (undecodable source, detector
error, timeout, encoder error) resolves to a placeholder image instead.
"""

import logging
import time
from typing import Optional, Union

from PIL import Image

from ..config import PipelineConfig, get_config
from .descriptor import parse_description
from .detector import StructuralRegionDetector
from .errors import OperationTimeout
from .placeholder import PlaceholderGenerator
from .regions import CropRect, clamp_rect
from .timeouts import run_with_timeout
from .vision import VisionEngine, crop_to_png, decode_image

logger = logging.getLogger(__name__)


class CropOrchestrator:
    """
    Produce a PNG for one [IMAGE_CROP_NEEDED: ...] description.

    Args:
        config: Pipeline configuration (timeouts, detection, placeholder)
        detector: Structural detector; built from config if omitted
        placeholders: Placeholder generator; built from config if omitted
        engine: Vision handle passed to a detector built here
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        detector: Optional[StructuralRegionDetector] = None,
        placeholders: Optional[PlaceholderGenerator] = None,
        engine: Optional[VisionEngine] = None
    ):
        self.config = config or get_config()
        self.detector = detector or StructuralRegionDetector(
            engine=engine,
            config=self.config.detection,
            init_timeout=self.config.timeouts.vision_init_timeout
        )
        self.placeholders = placeholders or PlaceholderGenerator(self.config.placeholder)

    def locate(self, image: Image.Image, description: str) -> CropRect:
        """Clamped crop rectangle for a description on a decoded image."""
        descriptor = parse_description(description)
        raw = self.detector.detect(image, descriptor)
        rect = clamp_rect(raw, image.width, image.height)
        if rect != raw:
            logger.debug(f"Clamped {raw.to_tuple()} -> {rect.to_tuple()}")
        return rect

    def _crop(self, source: Union[bytes, Image.Image], description: str) -> bytes:
        image = source if isinstance(source, Image.Image) else decode_image(source)
        rect = self.locate(image, description)
        data = crop_to_png(image, *rect.to_tuple())
        logger.info(
            f"Cropped {rect.width}x{rect.height} at ({rect.x}, {rect.y}) for {description!r}"
        )
        return data

    def crop(self, source: Union[bytes, Image.Image], description: str) -> bytes:
        """
        Crop the described element from the source image.

        Decoding, detection and encoding together are bounded by the crop
        deadline. Never raises: any failure yields the placeholder for the
        description.

        Args:
            source: Encoded source image bytes or a decoded Pillow image
            description: Free-text element description

        Returns:
            PNG bytes of the crop, or of the placeholder
        """
        start = time.monotonic()
        try:
            data = run_with_timeout(
                self._crop,
                self.config.timeouts.crop_timeout,
                source,
                description,
                name="image cropping"
            )
        except OperationTimeout:
            logger.warning(f"Image cropping timeout for {description!r}, using placeholder")
            return self.placeholders.render_bounded(
                description, self.config.timeouts.placeholder_timeout
            )
        except Exception as e:
            logger.warning(
                f"Failed to create cropped image for {description!r}, using placeholder: {e}"
            )
            return self.placeholders.render_bounded(
                description, self.config.timeouts.placeholder_timeout
            )

        logger.debug(f"Crop finished in {time.monotonic() - start:.2f}s")
        return data
