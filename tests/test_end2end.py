"""
End-to-end integration tests for the cropping and packaging pipeline.
"""

import io
import zipfile

import pytest
import numpy as np
import sys
import tempfile
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class TestEndToEnd:
    """End-to-end integration tests."""

    @pytest.fixture
    def sample_page_image(self):
        """Create a page with text, a photo and a ruled table (PNG bytes)."""
        import cv2

        img = np.ones((1100, 850, 3), dtype=np.uint8) * 255

        # Title
        cv2.putText(img, "Quarterly Report", (200, 80),
                   cv2.FONT_HERSHEY_DUPLEX, 1.5, (0, 0, 0), 2)

        # Body text
        for i, y in enumerate(range(140, 260, 30)):
            cv2.putText(img, f"This is paragraph line {i+1} with sample content.",
                       (50, y), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 0), 1)

        # Photo in the right half
        cv2.rectangle(img, (550, 300), (780, 560), (40, 160, 30), -1)

        # Table (simple grid)
        table_x, table_y = 100, 700
        cell_w, cell_h = 150, 70
        for row in range(4):
            for col in range(4):
                x = table_x + col * cell_w
                y = table_y + row * cell_h
                cv2.rectangle(img, (x, y), (x + cell_w, y + cell_h), (0, 0, 0), 2)

        ok, encoded = cv2.imencode(".png", img)
        assert ok
        return encoded.tobytes()

    @pytest.fixture
    def marked_text(self):
        return (
            "Quarterly Report\n"
            "\n"
            "Sales grew in every region.\n"
            "[IMAGE_CROP_NEEDED: photo of the new store on the right]\n"
            "Figures by quarter & region:\n"
            "[IMAGE_CROP_NEEDED: table with quarterly figures]\n"
            "\n"
            "[IMAGE_CROP_NEEDED: handwritten note]\n"
        )

    @pytest.fixture
    def temp_output_dir(self):
        """Create a temporary output directory."""
        with tempfile.TemporaryDirectory(prefix="docpack_test_") as tmp_dir:
            yield Path(tmp_dir)

    def test_full_pipeline(self, sample_page_image, marked_text, temp_output_dir):
        """Test crops from a real page end up in a valid package."""
        from PIL import Image
        from docpack.config import PipelineConfig
        from docpack.utils.export import DocumentExporter, ExtractedContent

        exporter = DocumentExporter(temp_output_dir, config=PipelineConfig())
        result = exporter.export(ExtractedContent(
            filename="report.png",
            content=marked_text,
            source_image=sample_page_image,
        ))

        assert result.format == "docx"
        assert result.image_count == 3
        assert result.path.name == "report_extracted.docx"

        with zipfile.ZipFile(result.path) as archive:
            names = archive.namelist()
            for n in (1, 2, 3):
                assert f"word/media/image{n}.png" in names

            photo = Image.open(io.BytesIO(archive.read("word/media/image1.png"))).convert("RGB")
            table = Image.open(io.BytesIO(archive.read("word/media/image2.png")))
            document = archive.read("word/document.xml")

        # The photo crop is green at its center and snapped to the right edge
        r, g, b = photo.getpixel((photo.width // 2, photo.height // 2))
        assert g > 120 and r < 80 and b < 80
        # The table spans its ruled grid
        assert abs(table.width - 601) <= 12
        assert abs(table.height - 281) <= 12

        assert b"Figures by quarter &amp; region:" in document
        assert b"IMAGE_CROP_NEEDED" not in document
        assert b"IMAGE_PLACEHOLDER" not in document

    def test_opens_in_word_reader(self, sample_page_image, marked_text, temp_output_dir):
        """Test that python-docx reads the result in order."""
        docx = pytest.importorskip("docx")
        from docpack.config import PipelineConfig
        from docpack.utils.export import DocumentExporter, ExtractedContent

        config = PipelineConfig()
        config.detection.enabled = False
        result = DocumentExporter(temp_output_dir, config=config).export(ExtractedContent(
            filename="report.png",
            content=marked_text,
            source_image=sample_page_image,
        ))

        document = docx.Document(str(result.path))
        texts = [p.text for p in document.paragraphs]
        assert texts[:3] == ["Quarterly Report", "", "Sales grew in every region."]
        assert "Figures by quarter & region:" in texts
        assert len(document.inline_shapes) == 3

    def test_without_source_uses_placeholders(self, marked_text, temp_output_dir):
        """Test the pipeline when no source image is available."""
        from PIL import Image
        from docpack.config import PipelineConfig
        from docpack.utils.export import DocumentExporter, ExtractedContent

        result = DocumentExporter(temp_output_dir, config=PipelineConfig()).export(
            ExtractedContent(filename="notes.txt", content=marked_text)
        )

        with zipfile.ZipFile(result.path) as archive:
            for n in (1, 2, 3):
                image = Image.open(io.BytesIO(archive.read(f"word/media/image{n}.png")))
                assert image.size == (300, 300)

    def test_document_deadline_falls_back(self, sample_page_image, marked_text, temp_output_dir):
        """Test that a document over its deadline is written as text."""
        from docpack.config import PipelineConfig
        from docpack.utils.export import DocumentExporter, ExtractedContent

        config = PipelineConfig()
        config.timeouts.document_timeout = 0.000001
        result = DocumentExporter(temp_output_dir, config=config).export(ExtractedContent(
            filename="report.png",
            content=marked_text,
            source_image=sample_page_image,
        ))

        assert result.format == "txt"
        assert result.path.read_text(encoding="utf-8") == marked_text
