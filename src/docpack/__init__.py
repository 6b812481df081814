"""
docpack
=======

Turns marked text into Word documents with the referenced visual elements
embedded as images.

Main components:
- Description parsing (element type, position, size)
- Region estimation and OpenCV structural detection
- Deadline-bounded cropping with placeholder fallback
- Crop tag rewriting into image placeholders
- In-memory OOXML package assembly
- DOCX export with plain-text fallback
"""

__version__ = "1.0.0"
__author__ = "docpack Team"
