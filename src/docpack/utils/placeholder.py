"""
Placeholder images for visual elements that could not be cropped.
"""

import logging
from typing import List, Optional

from PIL import Image, ImageDraw, ImageFont

from ..config import PlaceholderConfig
from .timeouts import call_with_fallback
from .vision import encode_png

logger = logging.getLogger(__name__)


def _load_font(config: PlaceholderConfig):
    if config.font_path:
        try:
            return ImageFont.truetype(config.font_path, config.font_size)
        except OSError as e:
            logger.warning(f"Could not load font {config.font_path}: {e}")
    try:
        return ImageFont.load_default(size=config.font_size)
    except TypeError:
        # Pillow < 10.1 only ships the fixed-size bitmap font
        return ImageFont.load_default()


def wrap_words(description: str, measure, max_width: float) -> List[str]:
    """
    Greedy word wrap.

    Words are appended to the current line while the measured width of the
    extended line stays under ``max_width``; otherwise a new line starts.
    A single word wider than the limit gets a line of its own.
    """
    words = description.split()
    if not words:
        return []

    lines = []
    current = words[0]
    for word in words[1:]:
        candidate = f"{current} {word}"
        if measure(candidate) < max_width:
            current = candidate
        else:
            lines.append(current)
            current = word
    lines.append(current)
    return lines


class PlaceholderGenerator:
    """Render a labelled stand-in image from an element description."""

    def __init__(self, config: Optional[PlaceholderConfig] = None):
        self.config = config or PlaceholderConfig()

    def render(self, description: str) -> bytes:
        """
        Render the placeholder as PNG bytes.

        Args:
            description: Caption text

        Returns:
            PNG bytes, or b"" if the canvas could not be created or encoded
        """
        try:
            return self._render(description or "")
        except Exception as e:
            logger.warning(f"Failed to create placeholder image for {description!r}: {e}")
            return b""

    def render_bounded(self, description: str, timeout: Optional[float]) -> bytes:
        """render() under a deadline; a timeout also yields b""."""
        return call_with_fallback(
            self.render, timeout, lambda: b"", description,
            name="placeholder rendering"
        )

    def _render(self, description: str) -> bytes:
        cfg = self.config
        size = cfg.size

        canvas = Image.new("RGB", (size, size), cfg.background)
        draw = ImageDraw.Draw(canvas)

        inset = cfg.border_inset
        draw.rectangle(
            [inset, inset, size - inset - 1, size - inset - 1],
            outline=cfg.border_color,
            width=cfg.border_width
        )

        font = _load_font(cfg)
        lines = wrap_words(
            description,
            lambda text: draw.textlength(text, font=font),
            size - cfg.text_margin
        )

        # Line centers are line_height apart; the block is vertically centered
        start_y = (size - (len(lines) - 1) * cfg.line_height) / 2
        for i, line in enumerate(lines):
            left, top, right, bottom = draw.textbbox((0, 0), line, font=font)
            x = (size - (right - left)) / 2 - left
            y = start_y + i * cfg.line_height - (top + bottom) / 2
            draw.text((x, y), line, fill=cfg.text_color, font=font)

        data = encode_png(canvas)
        logger.debug(f"Rendered placeholder with {len(lines)} caption line(s)")
        return data


def create_placeholder_image(description: str, config: Optional[PlaceholderConfig] = None) -> bytes:
    """Convenience wrapper around PlaceholderGenerator.render()."""
    return PlaceholderGenerator(config).render(description)
