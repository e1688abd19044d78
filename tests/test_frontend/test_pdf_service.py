"""Tests for survey PDF export."""
import io
import os
from datetime import date
import pytest
from PIL import Image
from fpdf import FPDF
from fpdf.errors import FPDFException
from shared.utils import encode_data_uri
from src.fieldops.services import pdf_service
from src.fieldops.services.pdf_service import (
    PDFService, PDFExportError, build_document, humanize, format_value, pdf_filename, sanitize
)
from src.fieldops.state import initial_survey_state


def png_uri(color='blue', size=(40, 20)):
    buffer = io.BytesIO()
    Image.new('RGB', size, color).save(buffer, format='PNG')
    return encode_data_uri(buffer.getvalue(), 'image/png')


@pytest.fixture
def form_state():
    state = initial_survey_state(date(2025, 1, 10))
    state.update(siteName='Apollo Substation', region='Gauteng', siteId='APL-01')
    state['equipmentRoomPhotos'] = [png_uri(), png_uri('green')]
    state['buildingPhoto'] = png_uri('red')
    state['roomLayoutDrawing'] = png_uri('white')
    state['transportLinks'][0]['direction'] = 'North'
    return state


def test_helpers():
    assert humanize('chargerALoadCurrent') == 'Charger A Load Current'
    assert humanize('siteName') == 'Site Name'
    assert format_value(True) == 'Yes'
    assert format_value('') == '-'
    assert format_value(0) == '0'
    assert pdf_filename('Apollo/Substation: 1') == 'Apollo Substation 1 Site Survey.pdf'
    assert pdf_filename('') == 'Untitled Site Survey.pdf'
    assert sanitize('Room – “A”') == 'Room - "A"'


def test_build_document(form_state):
    """Test the document is assembled from the form state alone."""
    document = build_document(form_state, generated_on=date(2025, 1, 11))

    assert document.site_name == 'Apollo Substation'
    assert document.survey_date == '2025-01-10'
    assert document.generated_on == '2025-01-11'

    summary = dict(document.summary)
    assert summary['Site Name'] == 'Apollo Substation'
    assert summary['Site Id'] == 'APL-01'
    assert 'Building Photo' not in summary
    assert 'Attendees' not in summary

    assert [image.caption for image in document.photos] == ['Building 1', 'Equipment room 1', 'Equipment room 2']
    assert [image.caption for image in document.drawings] == ['Room layout 1']

    titles = [section.title for section in document.sections]
    assert 'Equipment Photos' not in titles
    transport = next(s for s in document.sections if s.title == 'Transport Platforms')
    assert transport.tables[0].rows[0] == ['1', '-', 'North', '-']


def test_approvals_only_when_filled(form_state):
    assert build_document(form_state).approvals == []

    form_state['oemEngineer'] = {**form_state['oemEngineer'], 'name': 'B. Tech', 'accepted': True}
    approvals = build_document(form_state).approvals
    assert [a.role for a in approvals] == ['OEM Contractor', 'OEM Engineer', 'Eskom Representative']
    assert approvals[1].accepted is True


def test_render_writes_pdf_and_removes_temp_dir(form_state, tmp_path, monkeypatch):
    """Test the PDF is written and the staging directory is cleaned up."""
    staging = tmp_path / 'staging'

    def fake_mkdtemp(prefix=''):
        staging.mkdir()
        return str(staging)

    monkeypatch.setattr(pdf_service.tempfile, 'mkdtemp', fake_mkdtemp)
    form_state['eskomRepresentative'] = {**form_state['eskomRepresentative'],
                                         'name': 'C. Rep', 'signature': png_uri('black')}

    path = PDFService().export(form_state, tmp_path / 'out')

    assert path == tmp_path / 'out' / 'Apollo Substation Site Survey.pdf'
    assert path.read_bytes().startswith(b'%PDF')
    assert not staging.exists()


def test_unreadable_image_is_skipped(form_state, tmp_path):
    form_state['odfPhotos'] = ['data:image/png;base64,AAAA']
    path = PDFService().export(form_state, tmp_path)
    assert path.exists()


def test_render_failure_raises_and_cleans_up(form_state, tmp_path, monkeypatch):
    staging = tmp_path / 'staging'

    def fake_mkdtemp(prefix=''):
        staging.mkdir()
        return str(staging)

    def failing_output(self, *args, **kwargs):
        raise FPDFException('broken')

    monkeypatch.setattr(pdf_service.tempfile, 'mkdtemp', fake_mkdtemp)
    monkeypatch.setattr(FPDF, 'output', failing_output)

    with pytest.raises(PDFExportError):
        PDFService().export(form_state, tmp_path / 'out')
    assert not staging.exists()
    assert not os.path.exists(tmp_path / 'out' / 'Apollo Substation Site Survey.pdf')


def test_from_config():
    class Config:
        pdf_page_format = 'Letter'
        pdf_margin_mm = 10.0
        organization_name = 'Grid Works'
        report_title = 'Site Report'

    service = PDFService.from_config(Config())
    document = service.build_document({'siteName': 'X'})
    assert service.page_format == 'Letter'
    assert document.organization == 'Grid Works'
    assert document.title == 'Site Report'
