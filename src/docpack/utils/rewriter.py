"""
Rewriting of crop tags into image placeholders.

Marked text from the upstream extractor contains tags such as
``[IMAGE_CROP_NEEDED: small icon top-left]``. The rewriter produces one image
asset per tag (a crop from the source image, or a placeholder when there is
no source) and replaces each tag occurrence with its own
``[IMAGE_PLACEHOLDER:img_N]`` marker.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Union

from PIL import Image

from ..config import (
    ASSET_ID_PREFIX,
    CROP_TAG_PATTERN,
    PLACEHOLDER_PATTERN,
    PipelineConfig,
    get_config,
)
from .cropping import CropOrchestrator
from .errors import OperationTimeout, RewriteTimeout
from .placeholder import PlaceholderGenerator
from .timeouts import run_with_timeout
from .vision import decode_image

logger = logging.getLogger(__name__)

CROP_TAG_RE = re.compile(CROP_TAG_PATTERN)
PLACEHOLDER_RE = re.compile(PLACEHOLDER_PATTERN)

# Invisible in Word; keeps literal markers in the input from matching
WORD_JOINER = "\u2060"


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class ImageAsset:
    """An image to embed, keyed by its sequential id (img_1, img_2, ...)."""
    id: str
    data: bytes
    description: str = ""


@dataclass
class RewrittenDocument:
    """Text with placeholder markers and the images they refer to, in order."""
    text: str
    images: List[ImageAsset] = field(default_factory=list)

    @property
    def image_ids(self) -> List[str]:
        return [image.id for image in self.images]


def asset_id(index: int) -> str:
    """Asset id for the 1-based tag index."""
    return f"{ASSET_ID_PREFIX}{index}"


def placeholder_marker(image_id: str) -> str:
    return f"[IMAGE_PLACEHOLDER:{image_id}]"


def find_crop_tags(text: str) -> List[re.Match]:
    """All crop tags in left-to-right order."""
    return list(CROP_TAG_RE.finditer(text or ""))


def has_crop_tags(text: str) -> bool:
    return CROP_TAG_RE.search(text or "") is not None


def neutralize_markers(text: str) -> str:
    """
    Break up placeholder markers already present in upstream text.

    Only markers emitted by the rewriter may reach the package builder, so a
    literal ``[IMAGE_PLACEHOLDER:img_1]`` in the input is kept as visible
    text but no longer parses as a marker.
    """
    return PLACEHOLDER_RE.sub(lambda m: "[" + WORD_JOINER + m.group(0)[1:], text)


# ============================================================================
# Rewriter
# ============================================================================

class ContentTagRewriter:
    """
    Turn crop tags into placeholder markers plus image assets.

    Args:
        config: Pipeline configuration
        orchestrator: Crop orchestrator used when a source image is given
        placeholders: Placeholder generator used when there is no source
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        orchestrator: Optional[CropOrchestrator] = None,
        placeholders: Optional[PlaceholderGenerator] = None
    ):
        self.config = config or get_config()
        self.placeholders = placeholders or PlaceholderGenerator(self.config.placeholder)
        self._orchestrator = orchestrator

    @property
    def orchestrator(self) -> CropOrchestrator:
        # Built on first use so placeholder-only documents never touch OpenCV
        if self._orchestrator is None:
            self._orchestrator = CropOrchestrator(self.config, placeholders=self.placeholders)
        return self._orchestrator

    def rewrite(
        self,
        source: Optional[Union[bytes, Image.Image]],
        text: str
    ) -> RewrittenDocument:
        """
        Replace every crop tag with a placeholder marker.

        Args:
            source: Original page image (bytes or decoded), or None/b"" if
                unavailable
            text: Marked text containing zero or more crop tags

        Returns:
            RewrittenDocument whose images match the tags one-to-one, in order
        """
        text = neutralize_markers(text or "")
        tags = find_crop_tags(text)
        if not tags:
            return RewrittenDocument(text=text, images=[])

        has_source = source is not None and (
            isinstance(source, Image.Image) or len(source) > 0
        )
        logger.info(
            f"Processing {len(tags)} image tag(s) "
            f"{'against source image' if has_source else 'with placeholders'}"
        )

        if has_source and not isinstance(source, Image.Image):
            # Decode once for all tags; a bad source still goes through crop()
            # so each tag gets its placeholder
            try:
                source = decode_image(source)
            except ValueError as e:
                logger.warning(f"Source image could not be decoded: {e}")

        images = []
        for index, match in enumerate(tags, start=1):
            description = match.group(1).strip()
            image_id = asset_id(index)

            if has_source:
                data = self.orchestrator.crop(source, description)
            else:
                data = self.placeholders.render_bounded(
                    description, self.config.timeouts.placeholder_timeout
                )

            if not data:
                logger.warning(f"Image {image_id} for {description!r} is empty")
            images.append(ImageAsset(id=image_id, data=data, description=description))

        # Rebuild from the match spans so identical tags each get their own id
        pieces = []
        cursor = 0
        for image, match in zip(images, tags):
            pieces.append(text[cursor:match.start()])
            pieces.append(placeholder_marker(image.id))
            cursor = match.end()
        pieces.append(text[cursor:])

        return RewrittenDocument(text="".join(pieces), images=images)

    def rewrite_bounded(
        self,
        source: Optional[Union[bytes, Image.Image]],
        text: str,
        timeout: Optional[float] = None
    ) -> RewrittenDocument:
        """
        rewrite() under the whole-document deadline.

        Raises:
            RewriteTimeout: If the pass does not finish in time
        """
        if timeout is None:
            timeout = self.config.timeouts.document_timeout
        try:
            return run_with_timeout(self.rewrite, timeout, source, text, name="image processing")
        except OperationTimeout as e:
            raise RewriteTimeout(f"Image processing timeout after {timeout:g} seconds") from e
