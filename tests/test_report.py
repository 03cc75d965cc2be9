"""
Tests for the patient PDF report: block ordering, placeholders, image
degradation, pagination and file naming.
"""

import pytest
from datetime import datetime
from unittest.mock import Mock
from PIL import Image

from logic.report import (
    PAGE_H,
    PAGE_W,
    ReportRenderer,
    format_date_time,
    report_filename,
)
from model.models import ClassificationOutcome
from tests.conftest import make_record


@pytest.fixture
def renderer(colombo):
    loader = Mock(return_value=Image.new("RGB", (400, 300), (0, 90, 160)))
    return ReportRenderer(colombo, image_loader=loader, clock=lambda: datetime(2024, 3, 12, 9, 0, 0))


def kinds(blocks):
    return [b.kind for b in blocks]


class TestRender:
    def test_block_order_without_image(self, renderer):
        blocks = renderer.render(make_record())
        assert kinds(blocks) == ["header", "patient", "analysis", "report"]

    def test_patient_block_content(self, renderer):
        patient = renderer.render(make_record())[1]
        assert patient.lines == [
            "Name: Alice Smith",
            "ID Number: KC-001",
            "Age: 34",
            "Gender: female",
            "Date: 10/03/2024, 14:00:00",
        ]

    def test_stored_prediction_lines(self, renderer):
        analysis = renderer.render(make_record())[2]
        assert analysis.lines == ["Result: Normal", "Accuracy: 97.10%"]

    def test_image_and_new_analysis(self, renderer):
        record = make_record(image_url="https://storage.test/scan.jpg")
        blocks = renderer.render(record, ClassificationOutcome("Keratoconus", 0.9977))
        assert kinds(blocks) == ["header", "patient", "analysis", "report", "image", "new_analysis"]
        assert blocks[-1].lines == ["Result: Keratoconus", "Accuracy: 99.77%"]
        renderer.image_loader.assert_called_once_with("https://storage.test/scan.jpg")

    def test_image_failure_is_omitted(self, renderer):
        renderer.image_loader.side_effect = OSError("404")
        record = make_record(image_url="https://storage.test/missing.jpg")
        blocks = renderer.render(record, ClassificationOutcome("Normal", 0.5))
        assert kinds(blocks) == ["header", "patient", "analysis", "report", "new_analysis"]

    def test_blank_image_url_is_not_loaded(self, renderer):
        renderer.render(make_record(image_url="   "))
        renderer.image_loader.assert_not_called()

    def test_missing_fields_render_na(self, renderer):
        record = make_record(first="", last="", id_number="", age=None, gender="",
                             date_time="", prediction="", report="")
        blocks = renderer.render(record)
        assert blocks[1].lines == [
            "Name: N/A N/A",
            "ID Number: N/A",
            "Age: N/A",
            "Gender: N/A",
            "Date: N/A",
        ]
        assert blocks[2].lines == ["N/A"]
        assert blocks[3].lines == ["N/A"]


class TestLayout:
    def test_short_report_is_one_page(self, renderer):
        pages = renderer.layout(renderer.render(make_record()))
        assert len(pages) == 1
        assert pages[0].size == (PAGE_W, PAGE_H)

    def test_long_report_spills_onto_more_pages(self, renderer):
        long_text = "\n".join(f"Observation {i}: topography within expected range." for i in range(150))
        pages = renderer.layout(renderer.render(make_record(report=long_text)))
        assert len(pages) > 1

    def test_write_pdf(self, renderer, tmp_path):
        record = make_record(image_url="gridfs-id", id_number="KC 001/A")
        path = renderer.write_pdf(record, str(tmp_path), ClassificationOutcome("Normal", 0.8))
        assert path.endswith("medical_report_KC_001_A.pdf")
        with open(path, "rb") as f:
            assert f.read(5) == b"%PDF-"


def test_report_filename_falls_back_when_id_missing():
    assert report_filename(make_record(id_number="")) == "medical_report_unknown.pdf"
    assert report_filename(make_record(id_number="KC-9")) == "medical_report_KC-9.pdf"


def test_format_date_time(colombo):
    assert format_date_time("2024-03-10T20:00:00Z", colombo) == "11/03/2024, 01:30:00"
    assert format_date_time("", colombo) == "N/A"
    assert format_date_time("soon", colombo) == "soon"
