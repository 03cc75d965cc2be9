import logging
from dataclasses import replace
from typing import Any, Dict, Optional

from logic.browser import RecordBrowser
from logic.config import Settings
from logic.intake import IntakeState, PatientIntakeFlow, ScanIntakeFlow
from logic.mongo_db import MongoDB, RecordStoreError
from logic.prediction import PredictionClient
from logic.previews import PreviewStore
from logic.report import ReportRenderer
from model.models import PatientRecord

logger = logging.getLogger(__name__)


class Dashboard:
    """
    Owns the store and prediction gateways and wires them into the record
    browser (reviewing view), the follow-up scan flow on the inspected
    record, the first-time intake flow and the report renderer.
    """

    def __init__(self, settings: Settings, store=None, predictor=None, previews: Optional[PreviewStore] = None):
        self.settings = settings
        self.store = store if store is not None else MongoDB.from_settings(settings)
        self.predictor = predictor if predictor is not None else PredictionClient.from_settings(settings)
        self.previews = previews if previews is not None else PreviewStore()

        tz = settings.timezone
        self.browser = RecordBrowser(self.store, tz, page_size=settings.page_size)
        self.follow_up = ScanIntakeFlow(self.predictor, self.previews)
        self.intake = PatientIntakeFlow(self.predictor, self.previews)
        self.renderer = ReportRenderer(tz, image_loader=self.store.load_image)

    # ---------- reviewing view ----------
    def refresh(self):
        return self.browser.load()

    def inspect(self, record_id: str) -> PatientRecord:
        record = self.browser.select(record_id)
        self.follow_up.reset()
        return record

    def close_inspection(self):
        self.browser.clear()
        self.follow_up.reset()

    def go_to_page(self, page: int):
        self.follow_up.reset()
        return self.browser.go_to(page)

    def save_follow_up(self) -> PatientRecord:
        """
        Write the follow-up outcome onto the inspected record. Follow-up
        results are only persisted through this explicit action.
        """
        record = self.browser.selected
        if record is None:
            raise RuntimeError("No patient record selected")
        if self.follow_up.state != IntakeState.RESULTED or self.follow_up.outcome is None:
            raise RuntimeError("No follow-up result to save")

        prediction = self.follow_up.outcome.text
        if not self.store.update_prediction(record.record_id, prediction):
            raise RecordStoreError(f"Patient {record.record_id} no longer exists")
        updated = replace(record, prediction=prediction)
        self.browser.replace(updated)
        self.follow_up.reset()
        logger.info("Saved follow-up result for %s", record.id_number)
        return updated

    def scan_thumbnail(self, ref: str, size=(320, 320)):
        """Load a stored scan shrunk for display. Safe to call off the UI thread."""
        img = self.store.load_image(ref)
        img.thumbnail(size)
        return img

    def download_report(self, directory: Optional[str] = None) -> str:
        record = self.browser.selected
        if record is None:
            raise RuntimeError("No patient record selected")
        current = self.follow_up.outcome if self.follow_up.state == IntakeState.RESULTED else None
        return self.renderer.write_pdf(record, directory or self.settings.report_dir, current)

    # ---------- intake view ----------
    def submit_intake(self, form: Dict[str, Any]) -> str:
        # the flow is reset only once the store has accepted the record
        submission = self.intake.submit_patient_details(form, reset=False)
        record_id = self.store.insert_patient(submission.record, image_path=submission.image_path)
        self.intake.reset()
        self.browser.load()
        return record_id

    def close(self):
        self.follow_up.reset()
        self.intake.reset()
        self.previews.release_all()
        self.store.close()
