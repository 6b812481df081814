"""
Configuration and constants for the region cropping and packaging pipeline.

This module provides:
- Global logging setup
- Timeouts for the bounded crop/placeholder operations
- Computer vision detection parameters
- Placeholder and DOCX export settings
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple
import logging

# ============================================================================
# Logging Configuration
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("docpack")


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class TimeoutConfig:
    """Deadlines (seconds) for the bounded operations."""
    crop_timeout: float = 10.0
    placeholder_timeout: float = 5.0
    vision_init_timeout: float = 5.0
    # Whole tag-rewrite pass for one document
    document_timeout: float = 15.0


@dataclass
class DetectionConfig:
    """Structural (OpenCV) region detection parameters."""
    enabled: bool = True
    canny_low: int = 50
    canny_high: int = 150
    # Picture detection
    saturation_threshold: int = 50
    saturation_blur: int = 15
    # Table detection
    adaptive_block_size: int = 11
    adaptive_c: int = 2
    line_kernel_length: int = 25
    # Handwriting detection
    gradient_threshold: int = 30
    cluster_distance_factor: float = 3.0
    # Candidate size filters (fraction of the frame)
    chart_min_size: Tuple[float, float] = (0.3, 0.2)
    icon_max_size: Tuple[float, float] = (0.2, 0.2)
    picture_min_size: Tuple[float, float] = (0.2, 0.2)
    table_min_size: Tuple[float, float] = (0.3, 0.2)
    handwriting_max_size: Tuple[float, float] = (0.1, 0.1)


@dataclass
class PlaceholderConfig:
    """Placeholder image rendering."""
    size: int = 300
    background: str = "#f0f0f0"
    border_color: str = "#cccccc"
    border_width: int = 2
    border_inset: int = 10
    text_color: str = "#666666"
    font_size: int = 16
    line_height: int = 20
    text_margin: int = 40
    font_path: Optional[str] = None  # None = Pillow's bundled font


@dataclass
class ExportConfig:
    """DOCX package export configuration."""
    font_family: str = "Calibri"
    font_size_half_points: int = 24
    image_max_width_inches: float = 6.0
    default_image_height_inches: float = 4.5
    # Letter page, 1 inch margins (twentieths of a point)
    page_width_twips: int = 12240
    page_height_twips: int = 15840
    page_margin_twips: int = 1440
    docx_suffix: str = "_extracted.docx"
    text_suffix: str = "_extracted.txt"


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    placeholder: PlaceholderConfig = field(default_factory=PlaceholderConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    debug_mode: bool = False


# ============================================================================
# Default Configuration Instance
# ============================================================================

def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={value!r}")
        return default


def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()

    config.timeouts.crop_timeout = _env_float(
        "DOCPACK_CROP_TIMEOUT", config.timeouts.crop_timeout
    )
    config.timeouts.document_timeout = _env_float(
        "DOCPACK_DOCUMENT_TIMEOUT", config.timeouts.document_timeout
    )

    if os.environ.get("DOCPACK_DISABLE_VISION", "").lower() == "true":
        config.detection.enabled = False

    if os.environ.get("DOCPACK_DEBUG", "").lower() == "true":
        config.debug_mode = True

    return config


# ============================================================================
# Package Markers
# ============================================================================

CROP_TAG_PATTERN = r"\[IMAGE_CROP_NEEDED: ?([^\]\n]*)\]"
PLACEHOLDER_PATTERN = r"\[IMAGE_PLACEHOLDER:(img_\d+)\]"
ASSET_ID_PREFIX = "img_"
