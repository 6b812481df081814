"""
Export module for extracted content.

Provides:
- ExtractedContent: marked text plus the source it was extracted from
- DOCX export (crop tags rewritten into embedded images)
- Plain-text export, also used as the fallback when packaging fails
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union

from ..config import PipelineConfig, get_config
from .errors import PackageBuildError, RewriteTimeout
from .io import ensure_dir, output_stem, write_bytes_atomic, write_text
from .ooxml import DocxPackageBuilder
from .rewriter import ContentTagRewriter, has_crop_tags

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

class ExtractionMethod(Enum):
    """How the marked text was obtained upstream."""
    DIRECT = "direct"
    OCR = "ocr"
    WORD = "word"
    # Reserved; no extractor produces it yet
    AI_PDF = "ai_pdf"


@dataclass
class ExtractedContent:
    """Marked text for one input file."""
    filename: str
    content: str
    method: ExtractionMethod = ExtractionMethod.DIRECT
    source_image: Optional[bytes] = None
    file_size: int = 0
    processing_time: float = 0.0  # milliseconds
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def has_image_tags(self) -> bool:
        return has_crop_tags(self.content)


@dataclass
class ExportResult:
    """Where an export landed and how."""
    path: Path
    format: str  # "docx" or "txt"
    image_count: int = 0
    fallback_reason: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.fallback_reason is not None


# ============================================================================
# Text Exporter
# ============================================================================

class TextExporter:
    """Export the marked text unchanged to a .txt file."""

    def __init__(self, suffix: str = "_extracted.txt"):
        self.suffix = suffix

    def export(self, content: ExtractedContent, output_dir: Union[str, Path]) -> Path:
        output_path = Path(output_dir) / f"{output_stem(content.filename)}{self.suffix}"
        # Lone surrogates are written as "?"
        write_text(content.content, output_path, errors="replace")
        logger.info(f"Exported text to: {output_path}")
        return output_path


# ============================================================================
# DOCX Exporter
# ============================================================================

class DocxExporter:
    """
    Export marked text to a Word package.

    Content with crop tags is rewritten (crops or placeholders) under the
    whole-document deadline and packaged with its images; content without
    tags becomes a plain paragraphs-only package.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        rewriter: Optional[ContentTagRewriter] = None,
        builder: Optional[DocxPackageBuilder] = None
    ):
        self.config = config or get_config()
        self.rewriter = rewriter or ContentTagRewriter(self.config)
        self.builder = builder or DocxPackageBuilder(self.config.export)

    def render(self, content: ExtractedContent) -> Tuple[bytes, int]:
        """
        Build the package bytes for ``content``.

        Returns:
            (package bytes, number of embedded images)

        Raises:
            RewriteTimeout: If tag rewriting misses the document deadline
            PackageBuildError: If the package cannot be built
        """
        stem = output_stem(content.filename)

        if not content.has_image_tags:
            logger.info(f"No image tags in {content.filename}; building text-only package")
            return self.builder.build_text(content.content, stem), 0

        rewritten = self.rewriter.rewrite_bounded(
            content.source_image,
            content.content,
            self.config.timeouts.document_timeout
        )
        data = self.builder.build(rewritten.text, rewritten.images, stem)
        return data, len(rewritten.images)

    def export(self, content: ExtractedContent, output_dir: Union[str, Path]) -> Path:
        """
        Export to ``<stem>_extracted.docx``.

        The file is only written once the archive is complete.

        Raises:
            RewriteTimeout, PackageBuildError: As raised by render()
        """
        data, _ = self.render(content)
        output_path = Path(output_dir) / f"{output_stem(content.filename)}{self.config.export.docx_suffix}"
        write_bytes_atomic(data, output_path)
        logger.info(f"Exported DOCX to: {output_path}")
        return output_path


# ============================================================================
# Combined Exporter
# ============================================================================

class DocumentExporter:
    """Export to DOCX, falling back to plain text when packaging fails."""

    def __init__(
        self,
        output_dir: Union[str, Path],
        config: Optional[PipelineConfig] = None,
        docx_exporter: Optional[DocxExporter] = None
    ):
        self.output_dir = Path(output_dir)
        self.config = config or get_config()
        self.docx_exporter = docx_exporter or DocxExporter(self.config)
        self.text_exporter = TextExporter(self.config.export.text_suffix)

    def export(self, content: ExtractedContent) -> ExportResult:
        """
        Export one extracted content.

        Args:
            content: Marked text and optional source image

        Returns:
            ExportResult for the .docx, or for the .txt fallback
        """
        ensure_dir(self.output_dir)
        start = time.time()

        try:
            data, image_count = self.docx_exporter.render(content)
        except (RewriteTimeout, PackageBuildError) as e:
            logger.error(
                f"Error generating Word document for {content.filename}: {e}. "
                f"Writing text file instead."
            )
            path = self.text_exporter.export(content, self.output_dir)
            return ExportResult(path=path, format="txt", fallback_reason=str(e))

        path = self.output_dir / f"{output_stem(content.filename)}{self.config.export.docx_suffix}"
        write_bytes_atomic(data, path)
        logger.info(
            f"Exported DOCX to: {path} ({image_count} image(s), "
            f"{time.time() - start:.2f}s)"
        )
        return ExportResult(path=path, format="docx", image_count=image_count)
