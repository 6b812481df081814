#!/usr/bin/env python
"""
Command-line interface for docpack.

Usage:
    docpack --input <marked.txt> --output <output_dir> [options]

Examples:
    # Crop tagged elements from the page image
    docpack --input page.txt --source page.png --output ./output

    # Use the first page of a PDF as the source
    docpack --input page.txt --source document.pdf --output ./output

    # No source: every tag becomes a labelled placeholder
    docpack --input page.txt --output ./output
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import get_config

logger = logging.getLogger("docpack")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_TEXT_FALLBACK = 2


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="docpack",
        description="Package marked text into a Word document with cropped images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Crop tagged elements from the page image:
    docpack --input page.txt --source page.png --output ./output

  Use placeholders only:
    docpack --input page.txt --output ./output

  Name the output after the original upload:
    docpack --input page.txt --source scan.jpg --output ./output --name scan.jpg

Exit codes: 0 = .docx written, 2 = text fallback written, 1 = error
        """
    )

    # Required arguments
    parser.add_argument(
        "--input", "-i",
        required=True,
        help="Marked text file containing [IMAGE_CROP_NEEDED: ...] tags"
    )

    parser.add_argument(
        "--output", "-o",
        required=True,
        help="Output directory for generated files"
    )

    # Optional arguments
    parser.add_argument(
        "--source", "-s",
        default=None,
        help="Source page image or PDF (first page) to crop from"
    )

    parser.add_argument(
        "--name", "-n",
        default=None,
        help="Original filename used to name outputs (default: input filename)"
    )

    parser.add_argument(
        "--crop-timeout",
        type=float,
        default=None,
        help="Seconds allowed per crop before a placeholder is used (default: 10)"
    )

    parser.add_argument(
        "--document-timeout",
        type=float,
        default=None,
        help="Seconds allowed for all image processing in one document (default: 15)"
    )

    parser.add_argument(
        "--dpi",
        type=int,
        default=200,
        help="DPI for PDF to image conversion (default: 200)"
    )

    parser.add_argument(
        "--no-vision",
        action="store_true",
        help="Skip OpenCV detection and use heuristic regions only"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def run_pipeline(args) -> int:
    """Read the marked text, export it and report the outcome."""
    from .utils.export import DocumentExporter, ExtractedContent
    from .utils.io import ensure_dir, load_source_image, read_text

    start_time = time.time()

    config = get_config()
    if args.crop_timeout is not None:
        config.timeouts.crop_timeout = args.crop_timeout
    if args.document_timeout is not None:
        config.timeouts.document_timeout = args.document_timeout
    if args.no_vision:
        config.detection.enabled = False
    if config.debug_mode and not args.quiet:
        logging.getLogger().setLevel(logging.DEBUG)

    output_dir = ensure_dir(args.output)
    input_path = Path(args.input)
    text = read_text(input_path)

    source = None
    if args.source:
        logger.info(f"Loading source: {args.source}")
        source = load_source_image(args.source, dpi=args.dpi)

    filename = args.name or (Path(args.source).name if args.source else input_path.name)
    content = ExtractedContent(
        filename=filename,
        content=text,
        source_image=source,
        file_size=len(text.encode("utf-8"))
    )

    exporter = DocumentExporter(output_dir, config=config)
    result = exporter.export(content)

    elapsed = time.time() - start_time
    if not args.quiet:
        print("\n" + "="*60)
        print("EXPORT COMPLETE" if not result.is_fallback else "EXPORT FELL BACK TO TEXT")
        print("="*60)
        print(f"Input: {input_path}")
        print(f"Output: {result.path}")
        if result.is_fallback:
            print(f"Reason: {result.fallback_reason}")
        else:
            print(f"Images embedded: {result.image_count}")
        print(f"Processing time: {elapsed:.2f}s")
        print("="*60)

    return EXIT_TEXT_FALLBACK if result.is_fallback else EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args(argv)

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    try:
        return run_pipeline(args)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except (FileNotFoundError, ValueError, RuntimeError, ImportError) as e:
        logger.error(str(e))
        return EXIT_ERROR
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.verbose:
            raise
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
