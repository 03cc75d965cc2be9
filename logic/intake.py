import logging
import mimetypes
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from logic.prediction import PredictionError
from model.models import ClassificationOutcome, Gender, PatientRecord

logger = logging.getLogger(__name__)

NOT_AN_IMAGE = "Please select an image file"
PREDICTION_FAILED = "An error occurred during prediction"


class IntakeState(str, Enum):
    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    CLASSIFYING = "classifying"
    RESULTED = "resulted"
    AWAITING_PATIENT_DETAILS = "awaiting_patient_details"


class PatientFormError(ValueError):
    def __init__(self, fields: List[str]):
        self.fields = fields
        super().__init__("Missing or invalid: " + ", ".join(fields))


@dataclass
class Submission:
    record: PatientRecord
    image_path: Optional[str]


class ScanIntakeFlow:
    """
    Upload -> preview -> classify -> result lifecycle for one scan.

    Used as is for follow-up scans on an existing record; the first-time
    intake variant (`PatientIntakeFlow`) adds the patient details step.
    """

    def __init__(self, predictor, previews):
        self.predictor = predictor
        self.previews = previews

        self.state = IntakeState.IDLE
        self.file_path: Optional[str] = None
        self.media_type: Optional[str] = None
        self.preview: Optional[str] = None
        self.outcome: Optional[ClassificationOutcome] = None
        self.error: Optional[str] = None
        self._listeners: List[Callable[["ScanIntakeFlow"], None]] = []

    # ---------- observers ----------
    def subscribe(self, callback: Callable[["ScanIntakeFlow"], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self):
        for cb in list(self._listeners):
            cb(self)

    @property
    def outcome_text(self) -> Optional[str]:
        return self.outcome.text if self.outcome else None

    # ---------- transitions ----------
    def select_file(self, path: str, media_type: Optional[str] = None) -> IntakeState:
        if self.state == IntakeState.CLASSIFYING:
            return self.state

        media_type = media_type or mimetypes.guess_type(path)[0] or ""
        if not media_type.startswith("image/"):
            self.error = NOT_AN_IMAGE
            self._notify()
            return self.state

        try:
            handle = self.previews.acquire(path)
        except (OSError, ValueError) as e:
            logger.warning("Could not open %s for preview: %s", path, e)
            self.error = f"Could not open image: {e}"
            self._notify()
            return self.state

        self.previews.release(self.preview)
        self.file_path = path
        self.media_type = media_type
        self.preview = handle
        self.outcome = None
        self.error = None
        self.state = IntakeState.FILE_SELECTED
        self._notify()
        return self.state

    def begin_classify(self) -> Optional[str]:
        """Enter CLASSIFYING and return the image to send; None if not allowed now."""
        if self.state != IntakeState.FILE_SELECTED:
            return None
        self.state = IntakeState.CLASSIFYING
        self.error = None
        self._notify()
        return self.file_path

    def complete_classify(self, outcome: ClassificationOutcome) -> IntakeState:
        if self.state != IntakeState.CLASSIFYING:
            # reset while the call was in flight
            logger.debug("Dropping stale classification result")
            return self.state
        self.outcome = outcome
        self.state = self._after_result()
        self._notify()
        return self.state

    def fail_classify(self, message: str) -> IntakeState:
        if self.state != IntakeState.CLASSIFYING:
            return self.state
        self.outcome = None
        self.error = message or PREDICTION_FAILED
        self.state = IntakeState.FILE_SELECTED
        self._notify()
        return self.state

    def fetch_outcome(self, path: str) -> Callable[[], IntakeState]:
        """
        Call the predictor for `path` and return the transition to apply.

        Does not touch flow state, so it may run on a worker thread; the
        returned callable must run wherever the flow's observers live.
        """
        try:
            outcome = self.predictor.classify(path)
        except PredictionError as e:
            message = str(e)
            return lambda: self.fail_classify(message)
        except Exception:
            logger.exception("Unexpected error during classification")
            return lambda: self.fail_classify(PREDICTION_FAILED)
        return lambda: self.complete_classify(outcome)

    def classify(self) -> IntakeState:
        path = self.begin_classify()
        if path is None:
            return self.state
        return self.fetch_outcome(path)()

    def reset(self) -> IntakeState:
        self.previews.release(self.preview)
        self.file_path = None
        self.media_type = None
        self.preview = None
        self.outcome = None
        self.error = None
        self.state = IntakeState.IDLE
        self._notify()
        return self.state

    def _after_result(self) -> IntakeState:
        return IntakeState.RESULTED


REQUIRED_FIELDS = ("first_name", "last_name", "age", "gender", "id_number")


def _clean_form(form: Dict[str, Any]) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    bad: List[str] = []
    for name in REQUIRED_FIELDS:
        value = form.get(name)
        if isinstance(value, str):
            value = value.strip()
        if value is None or value == "":
            bad.append(name)
            continue
        if name == "age":
            try:
                value = int(value)
            except (TypeError, ValueError):
                bad.append(name)
                continue
            if value < 0:
                bad.append(name)
                continue
        if name == "gender":
            value = str(value).lower()
            if value not in {g.value for g in Gender}:
                bad.append(name)
                continue
        cleaned[name] = value
    if bad:
        raise PatientFormError(bad)
    return cleaned


class PatientIntakeFlow(ScanIntakeFlow):
    """First-time intake: a successful classification asks for patient details."""

    def _after_result(self) -> IntakeState:
        return IntakeState.AWAITING_PATIENT_DETAILS

    def submit_patient_details(self, form: Dict[str, Any], reset: bool = True) -> Submission:
        if self.state != IntakeState.AWAITING_PATIENT_DETAILS or self.outcome is None:
            raise RuntimeError(f"Patient details cannot be submitted in state {self.state.value}")

        fields = _clean_form(form)
        record = PatientRecord(
            record_id="",
            first_name=fields["first_name"],
            last_name=fields["last_name"],
            age=fields["age"],
            gender=fields["gender"],
            id_number=fields["id_number"],
            report=(form.get("report") or "").strip(),
            prediction=self.outcome.text,
            date_time=datetime.now(timezone.utc).isoformat(),
            image_url="",
        )
        submission = Submission(record=record, image_path=self.file_path)
        logger.info("Patient details accepted for %s", record.id_number)
        if reset:
            self.reset()
        return submission
