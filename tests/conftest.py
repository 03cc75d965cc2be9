"""
Pytest Configuration and Shared Fixtures

Fakes for the record store and the prediction endpoint, plus sample
patient records and scan images written with Pillow.
"""

import pytest
from unittest.mock import Mock
from zoneinfo import ZoneInfo
from PIL import Image

from logic.config import Settings
from logic.previews import PreviewStore
from model.models import ClassificationOutcome, PatientRecord


def make_record(record_id="r1", first="Alice", last="Smith", id_number="KC-001",
                date_time="2024-03-10T08:30:00+00:00", **overrides):
    values = dict(
        record_id=record_id,
        first_name=first,
        last_name=last,
        age=34,
        gender="female",
        id_number=id_number,
        report="Mild irregular astigmatism.",
        prediction="Result: Normal\nAccuracy: 97.10%",
        date_time=date_time,
        image_url="",
    )
    values.update(overrides)
    return PatientRecord(**values)


@pytest.fixture
def colombo():
    return ZoneInfo("Asia/Colombo")


@pytest.fixture
def records():
    return [
        make_record("r1", "Alice", "Smith", "KC-001", "2024-03-10T08:30:00+00:00"),
        make_record("r2", "Bob", "Jones", "KC-002", "2024-03-10T20:00:00Z"),
        make_record("r3", "Carol", "Smithers", "EYE-77", "2024-03-11T01:15:00+05:30"),
    ]


@pytest.fixture
def mock_store(records):
    store = Mock()
    store.list_patients = Mock(return_value=list(records))
    store.insert_patient = Mock(return_value="new-id")
    store.update_prediction = Mock(return_value=True)
    store.load_image = Mock(return_value=Image.new("RGB", (64, 48), (200, 30, 30)))
    return store


@pytest.fixture
def mock_predictor():
    predictor = Mock()
    predictor.classify = Mock(return_value=ClassificationOutcome("Keratoconus", 0.9977))
    return predictor


@pytest.fixture
def previews():
    return PreviewStore(size=(32, 32))


@pytest.fixture
def scan_image(tmp_path):
    path = tmp_path / "scan.png"
    Image.new("RGB", (120, 90), (10, 120, 200)).save(path)
    return str(path)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        mongo_uri=None,
        db_name="keratoscan_test",
        patients_collection="patients",
        predict_url="http://inference.test/predict",
        predict_timeout=5.0,
        timezone_name="Asia/Colombo",
        page_size=2,
        report_dir=str(tmp_path / "reports"),
        log_level="DEBUG",
    )
