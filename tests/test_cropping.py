"""
Tests for the crop orchestrator.
"""

import io
import threading
import time

import pytest
import numpy as np
import cv2
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from docpack.config import PipelineConfig
from docpack.utils.cropping import CropOrchestrator
from docpack.utils.descriptor import parse_description
from docpack.utils.placeholder import PlaceholderGenerator
from docpack.utils.regions import CropRect, estimate_region
from docpack.utils.vision import VisionEngine


def png_bytes(image):
    ok, encoded = cv2.imencode(".png", image)
    assert ok
    return encoded.tobytes()


def decode(data):
    from PIL import Image
    return Image.open(io.BytesIO(data)).convert("RGB")


class _StalledDetector:
    """Detector whose detect() does not return until released."""

    def __init__(self):
        self.release = threading.Event()

    def detect(self, image, descriptor):
        self.release.wait(5.0)
        return CropRect(0, 0, 10, 10)


class _StalledPlaceholders(PlaceholderGenerator):
    """Placeholder generator whose render() does not return until released."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def render(self, description):
        self.release.wait(5.0)
        return b"late"


class _FixedDetector:
    def __init__(self, rect):
        self.rect = rect

    def detect(self, image, descriptor):
        return self.rect


@pytest.fixture
def config():
    config = PipelineConfig()
    config.timeouts.crop_timeout = 2.0
    return config


@pytest.fixture
def page_with_photo():
    """White page with a saturated photo block (BGR)."""
    image = np.ones((600, 800, 3), dtype=np.uint8) * 255
    cv2.rectangle(image, (200, 150), (500, 400), (30, 40, 220), -1)
    return image


class TestCropOrchestrator:
    """Tests for CropOrchestrator.crop()."""

    def test_crops_detected_region(self, config, page_with_photo):
        """Test that the crop covers the detected photo."""
        orchestrator = CropOrchestrator(config, engine=VisionEngine.from_module(cv2))
        cropped = decode(orchestrator.crop(png_bytes(page_with_photo), "photo"))

        width, height = cropped.size
        assert abs(width - 301) <= 24
        assert abs(height - 251) <= 24
        # Center of the crop is inside the photo (red in RGB)
        r, g, b = cropped.getpixel((width // 2, height // 2))
        assert r > 200 and g < 60 and b < 60

    def test_heuristic_crop_without_vision(self, config, page_with_photo):
        """Test crop dimensions when vision is unavailable."""
        orchestrator = CropOrchestrator(config, engine=VisionEngine.unavailable("off"))
        description = "small icon top-left"

        cropped = decode(orchestrator.crop(png_bytes(page_with_photo), description))
        expected = estimate_region(800, 600, parse_description(description))
        assert cropped.size == (expected.width, expected.height)

    def test_accepts_decoded_image(self, config, page_with_photo):
        """Test a Pillow image as source."""
        from PIL import Image

        orchestrator = CropOrchestrator(config, engine=VisionEngine.unavailable("off"))
        source = Image.fromarray(cv2.cvtColor(page_with_photo, cv2.COLOR_BGR2RGB))
        assert decode(orchestrator.crop(source, "chart")).size == (480, 240)

    def test_undecodable_source_gives_placeholder(self, config):
        """Test garbage bytes."""
        orchestrator = CropOrchestrator(config, engine=VisionEngine.unavailable("off"))
        data = orchestrator.crop(b"definitely not an image", "chart")
        assert decode(data).size == (300, 300)

    def test_empty_source_gives_placeholder(self, config):
        """Test zero-length bytes."""
        orchestrator = CropOrchestrator(config, engine=VisionEngine.unavailable("off"))
        assert decode(orchestrator.crop(b"", "photo")).size == (300, 300)

    def test_stalled_detector_times_out(self, config, page_with_photo):
        """Test that a never-resolving detector yields a placeholder in time."""
        config.timeouts.crop_timeout = 0.2
        detector = _StalledDetector()
        orchestrator = CropOrchestrator(config, detector=detector)

        start = time.monotonic()
        data = orchestrator.crop(png_bytes(page_with_photo), "bar chart")
        elapsed = time.monotonic() - start
        detector.release.set()

        assert elapsed < 2.0
        assert decode(data).size == (300, 300)

    def test_placeholder_after_timeout_is_bounded(self, config, page_with_photo):
        """Test that the placeholder fallback has its own deadline."""
        config.timeouts.crop_timeout = 0.2
        config.timeouts.placeholder_timeout = 0.2
        detector = _StalledDetector()
        placeholders = _StalledPlaceholders()
        orchestrator = CropOrchestrator(config, detector=detector, placeholders=placeholders)

        start = time.monotonic()
        data = orchestrator.crop(png_bytes(page_with_photo), "bar chart")
        elapsed = time.monotonic() - start
        detector.release.set()
        placeholders.release.set()

        assert elapsed < 2.0
        assert data == b""

    def test_out_of_bounds_detection_is_clamped(self, config, page_with_photo):
        """Test that oversized detector output is clamped to the image."""
        detector = _FixedDetector(CropRect(-50, -50, 5000, 5000))
        orchestrator = CropOrchestrator(config, detector=detector)

        cropped = decode(orchestrator.crop(png_bytes(page_with_photo), "chart"))
        assert cropped.size == (800, 600)

    def test_locate(self, config, page_with_photo):
        """Test locate() on a decoded image."""
        from PIL import Image

        detector = _FixedDetector(CropRect(790, 590, 40, 40))
        orchestrator = CropOrchestrator(config, detector=detector)
        image = Image.fromarray(page_with_photo)

        assert orchestrator.locate(image, "icon") == CropRect(760, 560, 40, 40)
