"""
Image decoding and the OpenCV capability handle.

Provides:
- VisionEngine: lazily-initialized handle on OpenCV, with an explicit
  "unavailable" variant instead of a process-wide readiness flag
- Decoding of source bytes into Pillow images
- Conversions between Pillow images and OpenCV (BGR) arrays
- PNG encoding of crops
"""

import io
import logging
import threading
from typing import Any, Optional, Tuple

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


# ============================================================================
# Capability Handle
# ============================================================================

class VisionEngine:
    """
    Handle on the computer vision runtime (OpenCV).

    Create one with VisionEngine.load() (import happens on first use) or
    VisionEngine.unavailable(reason) when vision is disabled. Detectors take
    the handle in their constructor and check ``available`` instead of
    probing a global.
    """

    def __init__(self, loader=None, reason: Optional[str] = None):
        self._loader = loader
        self._reason = reason
        self._cv = None
        self._resolved = loader is None
        self._lock = threading.Lock()

    @classmethod
    def load(cls) -> "VisionEngine":
        """Handle that imports OpenCV lazily on first use."""
        return cls(loader=_import_opencv)

    @classmethod
    def unavailable(cls, reason: str) -> "VisionEngine":
        """Handle that never provides a vision runtime."""
        return cls(reason=reason)

    @classmethod
    def from_module(cls, cv: Any) -> "VisionEngine":
        """Handle wrapping an already imported module (or a stand-in)."""
        engine = cls()
        engine._cv = cv
        return engine

    def _resolve(self):
        with self._lock:
            if self._resolved:
                return
            try:
                self._cv = self._loader()
                version = getattr(self._cv, "__version__", "unknown")
                logger.info(f"OpenCV {version} available for region detection")
            except ImportError as e:
                self._reason = f"OpenCV not available: {e}"
                logger.warning(f"{self._reason}. Falling back to heuristic regions")
            except Exception as e:
                self._reason = f"Failed to initialize OpenCV: {e}"
                logger.warning(f"{self._reason}. Falling back to heuristic regions")
            self._resolved = True

    @property
    def available(self) -> bool:
        self._resolve()
        return self._cv is not None

    @property
    def reason(self) -> Optional[str]:
        """Why the engine is unavailable, or None if it is available."""
        self._resolve()
        return None if self._cv is not None else self._reason

    @property
    def cv(self) -> Any:
        """The OpenCV module. Raises RuntimeError if unavailable."""
        self._resolve()
        if self._cv is None:
            raise RuntimeError(self._reason or "Vision engine unavailable")
        return self._cv

    def __repr__(self) -> str:
        if not self._resolved:
            return "VisionEngine(pending)"
        if self._cv is None:
            return f"VisionEngine(unavailable: {self._reason})"
        return "VisionEngine(available)"


def _import_opencv():
    import cv2
    return cv2


# ============================================================================
# Decoding and Conversion
# ============================================================================

def decode_image(data: bytes) -> Image.Image:
    """
    Decode raw image bytes into an RGB Pillow image.

    Args:
        data: Encoded image (PNG, JPEG, ...)

    Returns:
        Fully loaded RGB image

    Raises:
        ValueError: If the bytes are empty or cannot be decoded
    """
    if not data:
        raise ValueError("No image data to decode")

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except Exception as e:
        raise ValueError(f"Could not decode image: {e}") from e

    if image.mode != "RGB":
        image = image.convert("RGB")

    logger.debug(f"Decoded image: {image.width}x{image.height}")
    return image


def to_bgr_array(image: Image.Image) -> np.ndarray:
    """Convert an RGB Pillow image to a BGR array for OpenCV."""
    rgb = np.asarray(image.convert("RGB"))
    return np.ascontiguousarray(rgb[:, :, ::-1])


def to_grayscale(cv: Any, image: np.ndarray) -> np.ndarray:
    """
    Convert image to grayscale if it's color.

    Args:
        cv: OpenCV module
        image: Input image (BGR, BGRA or grayscale)

    Returns:
        Grayscale image
    """
    if len(image.shape) == 2:
        return image
    elif len(image.shape) == 3:
        if image.shape[2] == 3:
            return cv.cvtColor(image, cv.COLOR_BGR2GRAY)
        elif image.shape[2] == 4:
            return cv.cvtColor(image, cv.COLOR_BGRA2GRAY)
        elif image.shape[2] == 1:
            return image.squeeze()

    raise ValueError(f"Unexpected image shape: {image.shape}")


def image_size(data: bytes) -> Optional[Tuple[int, int]]:
    """(width, height) of encoded image bytes, or None if unreadable."""
    if not data:
        return None
    try:
        with Image.open(io.BytesIO(data)) as image:
            return image.size
    except Exception as e:
        logger.debug(f"Could not read image size: {e}")
        return None


# ============================================================================
# Encoding
# ============================================================================

def crop_to_png(image: Image.Image, x: int, y: int, width: int, height: int) -> bytes:
    """
    Rasterize exactly the given sub-rectangle into PNG bytes.

    Raises:
        ValueError: If the rectangle is empty or outside the image
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Empty crop rectangle: {width}x{height}")
    if x < 0 or y < 0 or x + width > image.width or y + height > image.height:
        raise ValueError(
            f"Crop ({x}, {y}, {width}, {height}) outside {image.width}x{image.height} image"
        )

    cropped = image.crop((x, y, x + width, y + height))
    return encode_png(cropped)


def encode_png(image: Image.Image) -> bytes:
    """Encode a Pillow image as PNG bytes."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
