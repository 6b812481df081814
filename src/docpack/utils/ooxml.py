"""
OOXML (Word) package assembly.

Builds a minimal .docx in memory from text carrying
``[IMAGE_PLACEHOLDER:img_N]`` markers and the matching image assets:

    [Content_Types].xml
    _rels/.rels
    word/document.xml
    word/_rels/document.xml.rels
    word/styles.xml
    word/media/image{N}.png

The numeral N of an asset id is the single numbering source for the drawing
reference (rIdN), the drawing object id, both relationship manifests and the
media part name. The builder checks that all of them agree before the archive
is serialized and never returns a partially written package.
"""

import io
import logging
import re
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..config import ASSET_ID_PREFIX, PLACEHOLDER_PATTERN, ExportConfig
from .errors import PackageBuildError, PackageIntegrityError
from .vision import image_size

logger = logging.getLogger(__name__)


# ============================================================================
# Namespaces and Fixed Parts
# ============================================================================

NS_W = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
NS_R = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
NS_WP = "http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing"
NS_A = "http://schemas.openxmlformats.org/drawingml/2006/main"
NS_PIC = "http://schemas.openxmlformats.org/drawingml/2006/picture"
NS_PKG_RELS = "http://schemas.openxmlformats.org/package/2006/relationships"
NS_CONTENT_TYPES = "http://schemas.openxmlformats.org/package/2006/content-types"

REL_OFFICE_DOCUMENT = (
    "http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument"
)
REL_IMAGE = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/image"

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'

CONTENT_TYPES_PART = "[Content_Types].xml"
PACKAGE_RELS_PART = "_rels/.rels"
DOCUMENT_PART = "word/document.xml"
DOCUMENT_RELS_PART = "word/_rels/document.xml.rels"
STYLES_PART = "word/styles.xml"
MEDIA_DIR = "word/media"

# Package relationship id of the main document; image numerals start at 1
DOCUMENT_REL_ID = "rId0"

EMU_PER_INCH = 914400
EMU_PER_PIXEL = 9525  # at 96 DPI

PLACEHOLDER_RE = re.compile(PLACEHOLDER_PATTERN)
ASSET_ID_RE = re.compile(rf"^{re.escape(ASSET_ID_PREFIX)}(\d+)$")
# Characters XML 1.0 does not allow anywhere in a document, plus lone
# surrogates, which cannot be encoded as UTF-8
INVALID_XML_CHARS_RE = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


# ============================================================================
# Helpers
# ============================================================================

def escape_xml(text: str) -> str:
    """Escape &, < and > for element content (ampersand first)."""
    return (text
        .replace('&', '&amp;')
        .replace('<', '&lt;')
        .replace('>', '&gt;')
    )


def escape_xml_attribute(text: str) -> str:
    return escape_xml(text).replace('"', '&quot;')


def strip_invalid_xml_chars(text: str) -> str:
    return INVALID_XML_CHARS_RE.sub("", text)


def relationship_number(asset_id: str) -> int:
    """
    Relationship numeral of an asset id (img_N -> N).

    Raises:
        PackageIntegrityError: If the id is not of the form img_<digits>
    """
    match = ASSET_ID_RE.match(asset_id or "")
    if not match:
        raise PackageIntegrityError(f"Malformed image id: {asset_id!r}")
    return int(match.group(1))


def media_part_name(number: int) -> str:
    return f"{MEDIA_DIR}/image{number}.png"


@dataclass
class Paragraph:
    """One body paragraph: blank, text, or a drawing of image ``number``."""
    kind: str  # "blank", "text", "image"
    text: str = ""
    number: int = 0


def split_paragraphs(text: str) -> List[Paragraph]:
    """
    Split placeholder-marked text into body paragraphs, one per line.

    A line holding a placeholder marker becomes a drawing paragraph; text
    around markers on the same line gets paragraphs of its own.
    """
    paragraphs = []
    for line in (text or "").split("\n"):
        line = line.rstrip("\r")
        if line.strip() == "":
            paragraphs.append(Paragraph("blank"))
            continue

        cursor = 0
        for match in PLACEHOLDER_RE.finditer(line):
            before = line[cursor:match.start()]
            if before.strip():
                paragraphs.append(Paragraph("text", text=before))
            paragraphs.append(Paragraph("image", number=relationship_number(match.group(1))))
            cursor = match.end()

        rest = line[cursor:]
        if cursor == 0:
            paragraphs.append(Paragraph("text", text=line))
        elif rest.strip():
            paragraphs.append(Paragraph("text", text=rest))

    return paragraphs


# ============================================================================
# Package Builder
# ============================================================================

class DocxPackageBuilder:
    """
    Serialize text and images into a Word-compatible package.

    Args:
        config: Export configuration (font, image width, page setup)
    """

    def __init__(self, config: Optional[ExportConfig] = None):
        self.config = config or ExportConfig()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(self, text: str, images: Sequence, filename: Optional[str] = None) -> bytes:
        """
        Build a package from placeholder-marked text and image assets.

        Args:
            text: Text with [IMAGE_PLACEHOLDER:img_N] markers
            images: ImageAsset-like objects with ``id``, ``data`` and
                ``description``
            filename: Name the package is destined for (used in messages)

        Returns:
            Finalized .docx archive bytes

        Raises:
            PackageIntegrityError: If markers and assets do not line up
            PackageBuildError: If the archive cannot be serialized
        """
        parts = self.assemble(text, images)
        return self.serialize(parts, filename)

    def build_text(self, text: str, filename: Optional[str] = None) -> bytes:
        """
        Build a package from plain text without images.

        Paragraphs are separated by blank lines; single newlines inside a
        paragraph become line breaks.
        """
        body = [self._text_block_xml(block) for block in (text or "").split("\n\n")]
        parts = self._base_parts(body, [])
        self.check_integrity(parts)
        return self.serialize(parts, filename)

    def assemble(self, text: str, images: Sequence) -> Dict[str, bytes]:
        """
        Build all package parts (path -> bytes) without serializing them.

        Raises:
            PackageIntegrityError: If markers and assets do not line up
        """
        assets = self._index_assets(images)
        paragraphs = split_paragraphs(text)

        referenced: List[int] = []
        for paragraph in paragraphs:
            if paragraph.kind != "image":
                continue
            if paragraph.number not in assets:
                raise PackageIntegrityError(
                    f"Placeholder {ASSET_ID_PREFIX}{paragraph.number} has no image asset"
                )
            if paragraph.number in referenced:
                raise PackageIntegrityError(
                    f"Placeholder {ASSET_ID_PREFIX}{paragraph.number} is referenced more than once"
                )
            referenced.append(paragraph.number)

        unused = sorted(set(assets) - set(referenced))
        if unused:
            logger.warning(
                f"Dropping {len(unused)} image(s) without a placeholder: "
                f"{', '.join(f'{ASSET_ID_PREFIX}{n}' for n in unused)}"
            )

        embedded = [(number, assets[number]) for number in referenced]
        body = []
        for paragraph in paragraphs:
            if paragraph.kind == "blank":
                body.append("<w:p/>")
            elif paragraph.kind == "text":
                body.append(self._text_paragraph_xml([paragraph.text]))
            else:
                asset = assets[paragraph.number]
                body.append(self._drawing_xml(
                    paragraph.number,
                    getattr(asset, "description", "") or "",
                    self._extent(asset.data)
                ))

        parts = self._base_parts(body, [number for number, _ in embedded])
        for number, asset in embedded:
            parts[media_part_name(number)] = bytes(asset.data or b"")

        self.check_integrity(parts)
        logger.debug(
            f"Assembled package: {len(paragraphs)} paragraph(s), {len(embedded)} image(s)"
        )
        return parts

    def serialize(self, parts: Dict[str, bytes], filename: Optional[str] = None) -> bytes:
        """
        Finalize parts into a ZIP archive.

        Raises:
            PackageBuildError: If serialization fails
        """
        label = filename or "document"
        buffer = io.BytesIO()
        try:
            with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
                # Content types first, as Word-compatible readers expect
                archive.writestr(CONTENT_TYPES_PART, parts[CONTENT_TYPES_PART])
                for name, data in parts.items():
                    if name != CONTENT_TYPES_PART:
                        archive.writestr(name, data)
        except Exception as e:
            raise PackageBuildError(f"Failed to serialize package {label}: {e}") from e

        data = buffer.getvalue()
        logger.info(f"Built package {label}: {len(parts)} parts, {len(data)} bytes")
        return data

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    @staticmethod
    def check_integrity(parts: Dict[str, bytes]) -> None:
        """
        Verify that drawing references, relationships and media parts agree.

        The rId numerals embedded in word/document.xml, the image
        relationships of both manifests and the word/media/image{N}.png parts
        must be the same set, and every XML part must be well-formed.

        Raises:
            PackageIntegrityError: On any mismatch
        """
        for required in (CONTENT_TYPES_PART, PACKAGE_RELS_PART, DOCUMENT_PART,
                         DOCUMENT_RELS_PART, STYLES_PART):
            if required not in parts:
                raise PackageIntegrityError(f"Missing part {required}")

        trees = {}
        for name, data in parts.items():
            if name.endswith(".xml") or name.endswith(".rels"):
                try:
                    trees[name] = ET.fromstring(data)
                except ET.ParseError as e:
                    raise PackageIntegrityError(f"{name} is not well-formed XML: {e}") from e

        embedded = [
            blip.get(f"{{{NS_R}}}embed")
            for blip in trees[DOCUMENT_PART].iter(f"{{{NS_A}}}blip")
        ]
        embedded_numbers = _rid_numbers(embedded, DOCUMENT_PART)
        if len(embedded_numbers) != len(embedded):
            raise PackageIntegrityError("A relationship is embedded by more than one drawing")

        document_rels = _image_relationships(trees[DOCUMENT_RELS_PART])
        package_rels = _image_relationships(trees[PACKAGE_RELS_PART])
        media_numbers = set()
        for name in parts:
            if name.startswith(f"{MEDIA_DIR}/"):
                match = re.match(rf"^{MEDIA_DIR}/image(\d+)\.png$", name)
                if not match:
                    raise PackageIntegrityError(f"Unexpected media part {name}")
                media_numbers.add(int(match.group(1)))

        for number, target in document_rels.items():
            if target != f"media/image{number}.png":
                raise PackageIntegrityError(f"rId{number} targets {target} in {DOCUMENT_RELS_PART}")
        for number, target in package_rels.items():
            if target != media_part_name(number):
                raise PackageIntegrityError(f"rId{number} targets {target} in {PACKAGE_RELS_PART}")

        expected = set(embedded_numbers)
        for label, numbers in (
            (DOCUMENT_RELS_PART, set(document_rels)),
            (PACKAGE_RELS_PART, set(package_rels)),
            (MEDIA_DIR, media_numbers),
        ):
            if numbers != expected:
                raise PackageIntegrityError(
                    f"{label} declares images {sorted(numbers)} "
                    f"but the document embeds {sorted(expected)}"
                )

    # ------------------------------------------------------------------
    # Part Builders
    # ------------------------------------------------------------------

    @staticmethod
    def _index_assets(images: Sequence) -> Dict[int, object]:
        assets = {}
        for asset in images or []:
            number = relationship_number(asset.id)
            if number in assets:
                raise PackageIntegrityError(f"Duplicate image id {asset.id!r}")
            assets[number] = asset
        return assets

    def _base_parts(self, body: List[str], numbers: List[int]) -> Dict[str, bytes]:
        return {
            CONTENT_TYPES_PART: self._content_types_xml().encode("utf-8"),
            PACKAGE_RELS_PART: self._package_rels_xml(numbers).encode("utf-8"),
            DOCUMENT_PART: self._document_xml(body).encode("utf-8"),
            DOCUMENT_RELS_PART: self._document_rels_xml(numbers).encode("utf-8"),
            STYLES_PART: self._styles_xml().encode("utf-8"),
        }

    def _content_types_xml(self) -> str:
        return (
            XML_DECLARATION
            + f'<Types xmlns="{NS_CONTENT_TYPES}">\n'
            + '  <Default Extension="rels" '
              'ContentType="application/vnd.openxmlformats-package.relationships+xml"/>\n'
            + '  <Default Extension="xml" ContentType="application/xml"/>\n'
            + '  <Default Extension="png" ContentType="image/png"/>\n'
            + f'  <Override PartName="/{DOCUMENT_PART}" '
              'ContentType="application/vnd.openxmlformats-officedocument.'
              'wordprocessingml.document.main+xml"/>\n'
            + '</Types>'
        )

    def _relationships_xml(self, entries: Iterable[Tuple[str, str, str]]) -> str:
        lines = [XML_DECLARATION + f'<Relationships xmlns="{NS_PKG_RELS}">']
        for rel_id, rel_type, target in entries:
            lines.append(f'  <Relationship Id="{rel_id}" Type="{rel_type}" Target="{target}"/>')
        lines.append('</Relationships>')
        return "\n".join(lines)

    def _package_rels_xml(self, numbers: List[int]) -> str:
        entries = [(DOCUMENT_REL_ID, REL_OFFICE_DOCUMENT, DOCUMENT_PART)]
        entries += [(f"rId{n}", REL_IMAGE, media_part_name(n)) for n in numbers]
        return self._relationships_xml(entries)

    def _document_rels_xml(self, numbers: List[int]) -> str:
        return self._relationships_xml(
            (f"rId{n}", REL_IMAGE, f"media/image{n}.png") for n in numbers
        )

    def _styles_xml(self) -> str:
        font = escape_xml_attribute(self.config.font_family)
        size = self.config.font_size_half_points
        return (
            XML_DECLARATION
            + f'<w:styles xmlns:w="{NS_W}">\n'
            + '  <w:docDefaults>\n'
            + '    <w:rPrDefault>\n'
            + '      <w:rPr>\n'
            + f'        <w:rFonts w:ascii="{font}" w:hAnsi="{font}" '
              f'w:eastAsia="{font}" w:cs="{font}"/>\n'
            + f'        <w:sz w:val="{size}"/>\n'
            + f'        <w:szCs w:val="{size}"/>\n'
            + '      </w:rPr>\n'
            + '    </w:rPrDefault>\n'
            + '  </w:docDefaults>\n'
            + '</w:styles>'
        )

    def _document_xml(self, body: List[str]) -> str:
        cfg = self.config
        margin = cfg.page_margin_twips
        section = (
            '<w:sectPr>'
            f'<w:pgSz w:w="{cfg.page_width_twips}" w:h="{cfg.page_height_twips}"/>'
            f'<w:pgMar w:top="{margin}" w:right="{margin}" w:bottom="{margin}" '
            f'w:left="{margin}" w:header="720" w:footer="720" w:gutter="0"/>'
            '</w:sectPr>'
        )
        return (
            XML_DECLARATION
            + f'<w:document xmlns:w="{NS_W}" xmlns:r="{NS_R}" xmlns:wp="{NS_WP}" '
              f'xmlns:a="{NS_A}" xmlns:pic="{NS_PIC}">\n'
            + '  <w:body>\n'
            + "".join(f"    {p}\n" for p in body)
            + f'    {section}\n'
            + '  </w:body>\n'
            + '</w:document>'
        )

    def _text_paragraph_xml(self, lines: List[str]) -> str:
        runs = [
            f'<w:t xml:space="preserve">{escape_xml(strip_invalid_xml_chars(line))}</w:t>'
            for line in lines
        ]
        return f'<w:p><w:r>{"<w:br/>".join(runs)}</w:r></w:p>'

    def _text_block_xml(self, block: str) -> str:
        lines = [line.rstrip("\r") for line in block.split("\n")]
        lines = [line for line in lines if line.strip()]
        if not lines:
            return "<w:p/>"
        return self._text_paragraph_xml(lines)

    def _extent(self, data: bytes) -> Tuple[int, int]:
        """Drawing size in EMU: native size at 96 DPI, capped at the max width."""
        max_width = int(self.config.image_max_width_inches * EMU_PER_INCH)
        size = image_size(data)
        if not size or size[0] <= 0 or size[1] <= 0:
            return max_width, int(self.config.default_image_height_inches * EMU_PER_INCH)

        width_px, height_px = size
        cx = min(width_px * EMU_PER_PIXEL, max_width)
        cy = max(1, int(cx * height_px / width_px))
        return cx, cy

    def _drawing_xml(self, number: int, description: str, extent: Tuple[int, int]) -> str:
        cx, cy = extent
        name = f"Image {number}"
        descr = escape_xml_attribute(strip_invalid_xml_chars(description))
        return (
            '<w:p><w:r><w:drawing>'
            '<wp:inline distT="0" distB="0" distL="0" distR="0">'
            f'<wp:extent cx="{cx}" cy="{cy}"/>'
            '<wp:effectExtent l="0" t="0" r="0" b="0"/>'
            f'<wp:docPr id="{number}" name="{name}" descr="{descr}"/>'
            '<wp:cNvGraphicFramePr><a:graphicFrameLocks noChangeAspect="1"/></wp:cNvGraphicFramePr>'
            f'<a:graphic><a:graphicData uri="{NS_PIC}">'
            '<pic:pic>'
            f'<pic:nvPicPr><pic:cNvPr id="{number}" name="{name}"/><pic:cNvPicPr/></pic:nvPicPr>'
            f'<pic:blipFill><a:blip r:embed="rId{number}"/>'
            '<a:stretch><a:fillRect/></a:stretch></pic:blipFill>'
            '<pic:spPr>'
            f'<a:xfrm><a:off x="0" y="0"/><a:ext cx="{cx}" cy="{cy}"/></a:xfrm>'
            '<a:prstGeom prst="rect"><a:avLst/></a:prstGeom>'
            '</pic:spPr>'
            '</pic:pic>'
            '</a:graphicData></a:graphic>'
            '</wp:inline>'
            '</w:drawing></w:r></w:p>'
        )


def _rid_numbers(rel_ids: List[Optional[str]], part: str) -> Set[int]:
    numbers = set()
    for rel_id in rel_ids:
        match = re.match(r"^rId(\d+)$", rel_id or "")
        if not match:
            raise PackageIntegrityError(f"Unexpected relationship id {rel_id!r} in {part}")
        numbers.add(int(match.group(1)))
    return numbers


def _image_relationships(tree: ET.Element) -> Dict[int, str]:
    """Image relationships of a manifest as {numeral: target}."""
    relationships = {}
    for rel in tree.iter(f"{{{NS_PKG_RELS}}}Relationship"):
        if rel.get("Type") != REL_IMAGE:
            continue
        numbers = _rid_numbers([rel.get("Id")], "relationships")
        number = numbers.pop()
        if number in relationships:
            raise PackageIntegrityError(f"Duplicate relationship rId{number}")
        relationships[number] = rel.get("Target")
    return relationships
