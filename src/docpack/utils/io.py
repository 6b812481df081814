"""
I/O utilities for the packaging pipeline.

Handles:
- Loading the source page image (raster files or the first page of a PDF)
- Reading marked text
- Output naming and directory management
- Atomic writes of finished artifacts
"""

import io
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.tiff', '.tif', '.bmp', '.gif', '.webp')


# ============================================================================
# File Type Detection
# ============================================================================

def detect_input_type(input_path: Union[str, Path]) -> str:
    """
    Detect the type of a source file.

    Args:
        input_path: Path to the file

    Returns:
        One of: 'pdf', 'image', 'unknown'
    """
    input_path = Path(input_path)
    if not input_path.is_file():
        return 'unknown'

    suffix = input_path.suffix.lower()
    if suffix == '.pdf':
        return 'pdf'
    elif suffix in IMAGE_EXTENSIONS:
        return 'image'

    return 'unknown'


# ============================================================================
# Source Loading
# ============================================================================

def render_pdf_page(pdf_path: Union[str, Path], page: int = 1, dpi: int = 200) -> bytes:
    """
    Rasterize one PDF page to PNG bytes using pdf2image (poppler backend).

    Args:
        pdf_path: Path to the PDF file
        page: 1-indexed page number
        dpi: Rendering resolution

    Returns:
        PNG bytes of the page

    Raises:
        ImportError: If pdf2image is not installed
        RuntimeError: If poppler is missing or the PDF cannot be parsed
    """
    try:
        from pdf2image import convert_from_path
        from pdf2image.exceptions import PDFPageCountError, PDFSyntaxError
    except ImportError:
        raise ImportError(
            "pdf2image is required for PDF sources. Install with: pip install pdf2image\n"
            "Also ensure poppler is installed on your system."
        )

    try:
        logger.info(f"Rendering page {page} of {pdf_path} at {dpi} DPI")
        pages = convert_from_path(
            str(pdf_path),
            dpi=dpi,
            first_page=page,
            last_page=page,
            fmt='png'
        )
    except (PDFPageCountError, PDFSyntaxError) as e:
        raise RuntimeError(f"Failed to parse PDF: {e}")
    except Exception as e:
        if "poppler" in str(e).lower():
            raise RuntimeError(
                "Poppler is not installed. Install with:\n"
                "  macOS: brew install poppler\n"
                "  Linux: sudo apt-get install poppler-utils"
            )
        raise

    if not pages:
        raise RuntimeError(f"PDF has no page {page}: {pdf_path}")

    buffer = io.BytesIO()
    pages[0].save(buffer, format="PNG")
    return buffer.getvalue()


def load_source_image(source_path: Union[str, Path], dpi: int = 200) -> bytes:
    """
    Load the source page image as encoded bytes.

    Raster images are returned as stored; PDFs are rasterized (first page).

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file type is not supported
    """
    source_path = Path(source_path)
    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {source_path}")

    input_type = detect_input_type(source_path)
    if input_type == 'pdf':
        return render_pdf_page(source_path, page=1, dpi=dpi)
    elif input_type == 'image':
        data = source_path.read_bytes()
        logger.debug(f"Loaded source image: {source_path} ({len(data)} bytes)")
        return data

    raise ValueError(f"Unsupported source type: {source_path.suffix or source_path.name}")


def read_text(text_path: Union[str, Path]) -> str:
    """Read marked text (UTF-8)."""
    text_path = Path(text_path)
    if not text_path.exists():
        raise FileNotFoundError(f"Text file not found: {text_path}")

    with open(text_path, 'r', encoding='utf-8') as f:
        return f.read()


# ============================================================================
# Output Helpers
# ============================================================================

def output_stem(filename: str) -> str:
    """Filename without its final extension ("report.pdf" -> "report")."""
    name = Path(filename).name
    stem, dot, _ = name.rpartition('.')
    return stem if dot and stem else name


def ensure_dir(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Path to the directory

    Returns:
        Path object for the directory
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_bytes_atomic(data: bytes, output_path: Union[str, Path]) -> Path:
    """
    Write finished bytes to ``output_path`` via a temp file and rename.

    A reader never observes a half-written file at ``output_path``.
    """
    output_path = Path(output_path)
    ensure_dir(output_path.parent)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{output_path.name}.", dir=str(output_path.parent))
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.replace(tmp_name, output_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.debug(f"Wrote {len(data)} bytes to {output_path}")
    return output_path


def write_text(
    text: str,
    output_path: Union[str, Path],
    encoding: Optional[str] = 'utf-8',
    errors: str = 'strict'
) -> Path:
    """Write text atomically. ``errors`` is passed to str.encode()."""
    return write_bytes_atomic(text.encode(encoding, errors), output_path)
