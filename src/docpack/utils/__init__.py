"""
Utility modules for the region cropping and packaging pipeline.
"""

from .errors import (
    DocpackError, OperationTimeout, RewriteTimeout,
    PackageBuildError, PackageIntegrityError,
)
from .descriptor import ElementType, SizeHint, Position, ElementDescriptor, parse_description
from .regions import CropRect, clamp_rect, estimate_region, get_strategy
from .vision import VisionEngine
from .timeouts import run_with_timeout
from .detector import StructuralRegionDetector
from .placeholder import PlaceholderGenerator, create_placeholder_image
from .cropping import CropOrchestrator
from .rewriter import ContentTagRewriter, ImageAsset, RewrittenDocument
from .ooxml import DocxPackageBuilder, escape_xml, relationship_number
from .export import DocumentExporter, DocxExporter, ExtractedContent, ExtractionMethod
from .io import load_source_image, read_text, ensure_dir

__all__ = [
    # Errors
    "DocpackError", "OperationTimeout", "RewriteTimeout",
    "PackageBuildError", "PackageIntegrityError",
    # Descriptors
    "ElementType", "SizeHint", "Position", "ElementDescriptor", "parse_description",
    # Regions
    "CropRect", "clamp_rect", "estimate_region", "get_strategy",
    "VisionEngine", "StructuralRegionDetector",
    # Bounded operations
    "run_with_timeout",
    # Images
    "PlaceholderGenerator", "create_placeholder_image", "CropOrchestrator",
    # Rewriting and packaging
    "ContentTagRewriter", "ImageAsset", "RewrittenDocument",
    "DocxPackageBuilder", "escape_xml", "relationship_number",
    # Export
    "DocumentExporter", "DocxExporter", "ExtractedContent", "ExtractionMethod",
    # IO
    "load_source_image", "read_text", "ensure_dir",
]
