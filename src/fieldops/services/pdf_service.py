"""PDF export of a site survey.

The document is built from the form state alone: a title block, a summary of
every filled-in top-level value, one block per wizard section, then photo and
drawing galleries and the approvals table when there is anything to show.
"""
import logging
import re
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, List, Optional, Tuple

from fpdf import FPDF
from fpdf.enums import XPos, YPos
from fpdf.errors import FPDFException

from shared.utils import CorruptedImageError, is_data_uri, open_data_uri_image
from ..sections import APPROVAL_ROLES, DRAWING_FIELDS, PHOTO_FIELDS, SURVEY_SECTIONS
from ..state import get_field

logger = logging.getLogger(__name__)

GRAY = (230, 230, 230)
DARK = (60, 60, 60)
LIGHT = (120, 120, 120)
LINE_GRAY = (200, 200, 200)

H_SECTION = 8
H_ROW = 6
H_TABLE = 6.5
GALLERY_IMAGE_HEIGHT = 90
SIGNATURE_HEIGHT = 25

# Rendered by the galleries and the approvals table instead
SUMMARY_SKIP = {name for name, _ in PHOTO_FIELDS + DRAWING_FIELDS}


class PDFExportError(Exception):
    """Raised when the PDF cannot be rendered or written."""
    pass


@dataclass
class DocumentTable:
    title: str
    headers: List[str]
    rows: List[List[str]]


@dataclass
class DocumentSection:
    title: str
    rows: List[Tuple[str, str]] = field(default_factory=list)
    tables: List[DocumentTable] = field(default_factory=list)


@dataclass
class DocumentImage:
    caption: str
    data_uri: str


@dataclass
class ApprovalEntry:
    role: str
    name: str
    date: str
    accepted: bool
    comments: str
    signature: str


@dataclass
class SurveyDocument:
    title: str
    organization: str
    survey_date: str
    generated_on: str
    site_name: str
    summary: List[Tuple[str, str]] = field(default_factory=list)
    sections: List[DocumentSection] = field(default_factory=list)
    photos: List[DocumentImage] = field(default_factory=list)
    drawings: List[DocumentImage] = field(default_factory=list)
    approvals: List[ApprovalEntry] = field(default_factory=list)


def sanitize(text: Any) -> str:
    """Normalize text for the PDF core fonts, which only cover latin-1."""
    if not isinstance(text, str):
        text = "" if text is None else str(text)
    return (
        text.replace("–", "-")
        .replace("—", "-")
        .replace("“", "\"")
        .replace("”", "\"")
        .replace("’", "'")
        .encode("latin-1", errors="ignore")
        .decode("latin-1")
    )


def humanize(key: str) -> str:
    """``chargerALoadCurrent`` -> ``Charger A Load Current``."""
    words = re.sub(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])', ' ', key).split()
    return ' '.join(word[:1].upper() + word[1:] for word in words)


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return 'Yes' if value else 'No'
    if value is None or value == '':
        return '-'
    return str(value)


def make_filename_safe(text: str) -> str:
    txt = (text or "").strip()
    for ch in '<>:"/\\|?*':
        txt = txt.replace(ch, " ")
    return " ".join(txt.split())


def pdf_filename(site_name: str) -> str:
    return f"{make_filename_safe(site_name) or 'Untitled'} Site Survey.pdf"


def collect_images(form_state, fields) -> List[DocumentImage]:
    """Captioned images for every captured value of ``fields``, numbered per field."""
    images = []
    for field_name, category in fields:
        value = form_state.get(field_name)
        values = value if isinstance(value, list) else [value]
        captured = [v for v in values if is_data_uri(v)]
        for index, data_uri in enumerate(captured, start=1):
            images.append(DocumentImage(f"{category} {index}", data_uri))
    return images


def build_summary(form_state) -> List[Tuple[str, str]]:
    summary = []
    for key, value in form_state.items():
        if key in SUMMARY_SKIP or isinstance(value, (list, dict)) or is_data_uri(value):
            continue
        if value in (None, ''):
            continue
        summary.append((humanize(key), format_value(value)))
    return summary


def build_sections(form_state) -> List[DocumentSection]:
    sections = []
    for definition in SURVEY_SECTIONS:
        if not definition.fields and not definition.tables:
            continue
        section = DocumentSection(definition.title)
        for path, label in definition.fields:
            section.rows.append((label, format_value(get_field(form_state, path))))
        for table in definition.tables:
            records = get_field(form_state, table.name, []) or []
            section.tables.append(DocumentTable(
                title=table.title,
                headers=[label for _, label in table.columns],
                rows=[[format_value(record.get(key)) for key, _ in table.columns] for record in records],
            ))
        sections.append(section)
    return sections


def build_approvals(form_state) -> List[ApprovalEntry]:
    entries = []
    for key, role in APPROVAL_ROLES:
        approval = form_state.get(key) or {}
        entries.append(ApprovalEntry(
            role=role,
            name=approval.get('name', ''),
            date=approval.get('date', ''),
            accepted=bool(approval.get('accepted')),
            comments=approval.get('comments', ''),
            signature=approval.get('signature', ''),
        ))
    if not any(e.name or e.date or e.accepted or e.comments or e.signature for e in entries):
        return []
    return entries


def build_document(form_state, generated_on: Optional[date] = None,
                   organization: str = 'Akhanya IT',
                   title: str = 'Eskom OT IP/MPLS Network Site Survey Report') -> SurveyDocument:
    """Assemble the printable document for one survey form state."""
    generated_on = generated_on or date.today()
    return SurveyDocument(
        title=title,
        organization=organization,
        survey_date=form_state.get('date') or '',
        generated_on=generated_on.isoformat(),
        site_name=form_state.get('siteName') or '',
        summary=build_summary(form_state),
        sections=build_sections(form_state),
        photos=collect_images(form_state, PHOTO_FIELDS),
        drawings=collect_images(form_state, DRAWING_FIELDS),
        approvals=build_approvals(form_state),
    )


class PDFService:
    """Renders a ``SurveyDocument`` to a PDF file with fpdf2."""

    def __init__(self, page_format='A4', margin=15.0, organization='Akhanya IT',
                 title='Eskom OT IP/MPLS Network Site Survey Report'):
        self.page_format = page_format
        self.margin = margin
        self.organization = organization
        self.title = title
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(cls, config):
        return cls(
            page_format=config.pdf_page_format,
            margin=config.pdf_margin_mm,
            organization=config.organization_name,
            title=config.report_title,
        )

    def build_document(self, form_state, generated_on=None):
        return build_document(form_state, generated_on, organization=self.organization, title=self.title)

    def export(self, form_state, output_dir):
        return self.render(self.build_document(form_state), output_dir)

    def render(self, document: SurveyDocument, output_dir) -> Path:
        """Write ``document`` into ``output_dir`` and return the file path.

        Decoded images are staged in a temporary directory that is removed
        whether or not rendering succeeds.

        Raises:
            PDFExportError: If rendering or writing fails
        """
        output_path = Path(output_dir) / pdf_filename(document.site_name)
        temp_dir = tempfile.mkdtemp(prefix='fieldops-pdf-')
        try:
            pdf = FPDF(orientation='P', unit='mm', format=self.page_format)
            pdf.set_margins(self.margin, self.margin, self.margin)
            pdf.set_auto_page_break(auto=True, margin=self.margin)
            pdf.add_page()

            self._title_block(pdf, document)
            if document.summary:
                self._section_header(pdf, 'Survey Summary')
                for label, value in document.summary:
                    self._row(pdf, label, value)
            for section in document.sections:
                self._section_header(pdf, section.title)
                for label, value in section.rows:
                    self._row(pdf, label, value)
                for table in section.tables:
                    if table.rows:
                        self._table(pdf, table)
            if document.photos:
                self._gallery(pdf, 'Photo Gallery', document.photos, temp_dir)
            if document.drawings:
                self._gallery(pdf, 'Drawings', document.drawings, temp_dir)
            if document.approvals:
                self._approvals(pdf, document.approvals, temp_dir)

            output_path.parent.mkdir(parents=True, exist_ok=True)
            pdf.output(str(output_path))
        except (FPDFException, OSError, ValueError, RuntimeError) as e:
            self.logger.error(f"PDF export failed for {document.site_name!r}: {e}", exc_info=True)
            raise PDFExportError(f"Failed to generate PDF: {e}") from e
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

        self.logger.info(f"Exported survey PDF to {output_path}")
        return output_path

    def _usable_width(self, pdf):
        return pdf.w - pdf.l_margin - pdf.r_margin

    def _ensure_space(self, pdf, needed):
        if (pdf.h - pdf.b_margin) - pdf.get_y() < needed:
            pdf.add_page()

    def _title_block(self, pdf, document):
        pdf.set_font("Helvetica", "B", 11)
        pdf.set_text_color(*LIGHT)
        pdf.cell(0, 6, text=sanitize(document.organization), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_font("Helvetica", "B", 16)
        pdf.set_text_color(*DARK)
        pdf.multi_cell(0, 9, text=sanitize(document.title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_font("Helvetica", "", 11)
        pdf.set_text_color(*LIGHT)
        details = f"Site: {document.site_name or '-'}    Survey date: {document.survey_date or '-'}"
        pdf.cell(0, 7, text=sanitize(details), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.cell(0, 6, text=f"Generated {document.generated_on}", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_draw_color(*LINE_GRAY)
        pdf.set_line_width(0.4)
        y = pdf.get_y() + 2
        pdf.line(pdf.l_margin, y, pdf.w - pdf.r_margin, y)
        pdf.set_y(y + 3)

    def _section_header(self, pdf, text):
        self._ensure_space(pdf, 24)
        pdf.set_fill_color(*GRAY)
        pdf.set_text_color(*DARK)
        pdf.set_font("Helvetica", "B", 12)
        pdf.cell(0, H_SECTION, text=sanitize(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT, fill=True)
        pdf.ln(1.2)

    def _row(self, pdf, label, value):
        label_w = self._usable_width(pdf) * 0.38
        self._ensure_space(pdf, H_ROW * 2)
        pdf.set_font("Helvetica", "B", 10)
        pdf.set_text_color(*DARK)
        pdf.cell(label_w, H_ROW, text=sanitize(f"{label}:"))
        pdf.set_font("Helvetica", "", 10)
        pdf.set_text_color(0, 0, 0)
        pdf.multi_cell(0, H_ROW, text=sanitize(value), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def _fit(self, pdf, text, width):
        text = sanitize(text)
        while text and pdf.get_string_width(text) > width - 2:
            text = text[:-1]
        return text

    def _table(self, pdf, table):
        col_w = self._usable_width(pdf) / len(table.headers)

        def header():
            pdf.set_font("Helvetica", "B", 9)
            pdf.set_fill_color(*GRAY)
            pdf.set_text_color(*DARK)
            for i, title in enumerate(table.headers):
                last = i == len(table.headers) - 1
                pdf.cell(col_w, H_TABLE, text=self._fit(pdf, title, col_w), border=1, fill=True,
                         new_x=XPos.LMARGIN if last else XPos.RIGHT,
                         new_y=YPos.NEXT if last else YPos.TOP)

        pdf.ln(1)
        self._ensure_space(pdf, H_TABLE * 3)
        pdf.set_font("Helvetica", "B", 10)
        pdf.set_text_color(*DARK)
        pdf.cell(0, H_ROW, text=sanitize(table.title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        header()
        for row in table.rows:
            if (pdf.h - pdf.b_margin) - pdf.get_y() < H_TABLE + 2:
                pdf.add_page()
                header()
            pdf.set_font("Helvetica", "", 9)
            pdf.set_text_color(0, 0, 0)
            for i, value in enumerate(row):
                last = i == len(row) - 1
                pdf.cell(col_w, H_TABLE, text=self._fit(pdf, value, col_w), border=1,
                         new_x=XPos.LMARGIN if last else XPos.RIGHT,
                         new_y=YPos.NEXT if last else YPos.TOP)
        pdf.ln(2)

    def _stage_image(self, image, temp_dir, index):
        """Decode a data URI into a file under ``temp_dir``; None when it cannot be read."""
        try:
            img = open_data_uri_image(image_data=image.data_uri)
        except CorruptedImageError as e:
            self.logger.warning(f"Skipping unreadable image {image.caption!r}: {e}")
            return None
        if img.mode not in ('RGB', 'L'):
            img = img.convert('RGB')
        path = Path(temp_dir) / f"image_{index}.png"
        img.save(path, format='PNG')
        return path, img.size

    def _place_image(self, pdf, path, size, max_h):
        width, height = size
        scale = min(self._usable_width(pdf) / width, max_h / height)
        draw_w, draw_h = width * scale, height * scale
        self._ensure_space(pdf, draw_h + H_ROW)
        x = (pdf.w - draw_w) / 2.0
        pdf.image(str(path), x=x, y=pdf.get_y(), w=draw_w, h=draw_h)
        pdf.ln(draw_h + 1)

    def _gallery(self, pdf, title, images, temp_dir):
        self._section_header(pdf, title)
        for index, image in enumerate(images):
            staged = self._stage_image(image, temp_dir, f"{title.replace(' ', '_')}_{index}")
            pdf.set_font("Helvetica", "I", 9)
            pdf.set_text_color(*LIGHT)
            if staged is None:
                pdf.cell(0, H_ROW, text=sanitize(f"{image.caption} (image unavailable)"),
                         new_x=XPos.LMARGIN, new_y=YPos.NEXT)
                continue
            path, size = staged
            self._place_image(pdf, path, size, GALLERY_IMAGE_HEIGHT)
            pdf.set_font("Helvetica", "I", 9)
            pdf.set_text_color(*LIGHT)
            pdf.cell(0, H_ROW, text=sanitize(image.caption), align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            pdf.ln(2)

    def _approvals(self, pdf, approvals, temp_dir):
        self._section_header(pdf, 'Survey Outcome & Approvals')
        self._table(pdf, DocumentTable(
            title='Approvals',
            headers=['Role', 'Name', 'Date', 'Accepted', 'Comments'],
            rows=[[a.role, format_value(a.name), format_value(a.date), format_value(a.accepted),
                   format_value(a.comments)] for a in approvals],
        ))
        for index, approval in enumerate(approvals):
            if not is_data_uri(approval.signature):
                continue
            staged = self._stage_image(DocumentImage(f"{approval.role} signature", approval.signature),
                                       temp_dir, f"signature_{index}")
            if staged is None:
                continue
            self._ensure_space(pdf, SIGNATURE_HEIGHT + H_ROW * 2)
            pdf.set_font("Helvetica", "B", 10)
            pdf.set_text_color(*DARK)
            pdf.cell(0, H_ROW, text=sanitize(f"{approval.role} signature"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            path, size = staged
            self._place_image(pdf, path, size, SIGNATURE_HEIGHT)
