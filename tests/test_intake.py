"""
Tests for the scan intake state machine and the first-time intake variant.
"""

import pytest

from logic.intake import (
    NOT_AN_IMAGE,
    PREDICTION_FAILED,
    IntakeState,
    PatientFormError,
    PatientIntakeFlow,
    ScanIntakeFlow,
)
from logic.prediction import PredictionError
from logic.previews import is_preview_handle
from model.models import ClassificationOutcome

VALID_FORM = {
    "first_name": "Nimal",
    "last_name": "Perera",
    "age": "41",
    "gender": "male",
    "id_number": "KC-104",
}


@pytest.fixture
def flow(mock_predictor, previews):
    return ScanIntakeFlow(mock_predictor, previews)


@pytest.fixture
def intake(mock_predictor, previews):
    return PatientIntakeFlow(mock_predictor, previews)


class TestSelectFile:
    def test_image_selects_and_creates_preview(self, flow, previews, scan_image):
        assert flow.select_file(scan_image) == IntakeState.FILE_SELECTED
        assert is_preview_handle(flow.preview)
        assert previews.get(flow.preview) is not None
        assert flow.error is None

    def test_non_image_is_rejected_without_transition(self, flow, previews, tmp_path):
        doc = tmp_path / "notes.txt"
        doc.write_text("not an image")
        assert flow.select_file(str(doc)) == IntakeState.IDLE
        assert flow.error == NOT_AN_IMAGE
        assert flow.preview is None
        assert len(previews) == 0

    def test_non_image_keeps_existing_selection(self, flow, scan_image):
        flow.select_file(scan_image)
        handle = flow.preview
        flow.select_file("report.pdf", media_type="application/pdf")
        assert flow.state == IntakeState.FILE_SELECTED
        assert flow.preview == handle
        assert flow.file_path == scan_image
        assert flow.error == NOT_AN_IMAGE

    def test_replacing_file_releases_old_preview(self, flow, previews, scan_image):
        flow.select_file(scan_image)
        first = flow.preview
        flow.select_file(scan_image)
        assert flow.preview != first
        assert previews.get(first) is None
        assert len(previews) == 1

    def test_unreadable_image_sets_error(self, flow, tmp_path):
        broken = tmp_path / "broken.png"
        broken.write_bytes(b"\x89PNG not really")
        assert flow.select_file(str(broken)) == IntakeState.IDLE
        assert flow.error.startswith("Could not open image")

    def test_selection_clears_previous_outcome(self, flow, scan_image):
        flow.select_file(scan_image)
        flow.classify()
        assert flow.outcome is not None
        flow.select_file(scan_image)
        assert flow.outcome is None
        assert flow.state == IntakeState.FILE_SELECTED


class TestClassify:
    def test_success_formats_outcome(self, flow, mock_predictor, scan_image):
        flow.select_file(scan_image)
        assert flow.classify() == IntakeState.RESULTED
        mock_predictor.classify.assert_called_once_with(scan_image)
        assert flow.outcome_text == "Result: Keratoconus\nAccuracy: 99.77%"

    def test_failure_returns_to_file_selected(self, flow, mock_predictor, scan_image):
        mock_predictor.classify.side_effect = PredictionError("Failed to get prediction")
        flow.select_file(scan_image)
        assert flow.classify() == IntakeState.FILE_SELECTED
        assert flow.error == "Failed to get prediction"
        assert flow.outcome is None
        assert mock_predictor.classify.call_count == 1

    def test_unexpected_error_returns_to_file_selected(self, flow, mock_predictor, scan_image):
        mock_predictor.classify.side_effect = ConnectionResetError("peer reset")
        flow.select_file(scan_image)
        assert flow.classify() == IntakeState.FILE_SELECTED
        assert flow.error == PREDICTION_FAILED
        assert flow.outcome is None

    def test_fetch_outcome_defers_transition(self, flow, mock_predictor, scan_image):
        mock_predictor.classify.side_effect = KeyError("predicted_class")
        flow.select_file(scan_image)
        path = flow.begin_classify()
        apply = flow.fetch_outcome(path)
        assert flow.state == IntakeState.CLASSIFYING
        assert apply() == IntakeState.FILE_SELECTED
        assert flow.error == PREDICTION_FAILED

    def test_classify_from_idle_is_noop(self, flow, mock_predictor):
        assert flow.classify() == IntakeState.IDLE
        mock_predictor.classify.assert_not_called()

    def test_classify_while_pending_is_noop(self, flow, mock_predictor, scan_image):
        flow.select_file(scan_image)
        assert flow.begin_classify() == scan_image
        assert flow.begin_classify() is None
        assert flow.classify() == IntakeState.CLASSIFYING
        mock_predictor.classify.assert_not_called()

    def test_late_result_after_reset_is_dropped(self, flow, scan_image):
        flow.select_file(scan_image)
        flow.begin_classify()
        flow.reset()
        assert flow.complete_classify(ClassificationOutcome("Normal", 0.5)) == IntakeState.IDLE
        assert flow.fail_classify("boom") == IntakeState.IDLE
        assert flow.outcome is None
        assert flow.error is None

    def test_select_file_ignored_while_classifying(self, flow, scan_image):
        flow.select_file(scan_image)
        flow.begin_classify()
        assert flow.select_file(scan_image) == IntakeState.CLASSIFYING


class TestReset:
    @pytest.mark.parametrize("steps", [0, 1, 2, 3])
    def test_reset_from_any_state(self, flow, previews, scan_image, steps):
        if steps >= 1:
            flow.select_file(scan_image)
        if steps == 2:
            flow.begin_classify()
        if steps == 3:
            flow.classify()
        assert flow.reset() == IntakeState.IDLE
        assert flow.file_path is None
        assert flow.preview is None
        assert flow.outcome is None
        assert flow.error is None
        assert len(previews) == 0

    def test_observers_are_notified(self, flow, scan_image):
        states = []
        flow.subscribe(lambda f: states.append(f.state))
        flow.select_file(scan_image)
        flow.classify()
        flow.reset()
        assert states == [
            IntakeState.FILE_SELECTED,
            IntakeState.CLASSIFYING,
            IntakeState.RESULTED,
            IntakeState.IDLE,
        ]


class TestPatientIntake:
    def test_result_awaits_patient_details(self, intake, scan_image):
        intake.select_file(scan_image)
        assert intake.classify() == IntakeState.AWAITING_PATIENT_DETAILS

    def test_submit_builds_record_and_resets(self, intake, scan_image):
        intake.select_file(scan_image)
        intake.classify()
        submission = intake.submit_patient_details(dict(VALID_FORM, report="Steep K 49D"))

        record = submission.record
        assert record.first_name == "Nimal"
        assert record.age == 41
        assert record.gender == "male"
        assert record.prediction == "Result: Keratoconus\nAccuracy: 99.77%"
        assert record.report == "Steep K 49D"
        assert record.date_time.endswith("+00:00")
        assert record.image_url == ""
        assert submission.image_path == scan_image
        assert intake.state == IntakeState.IDLE

    def test_submit_without_reset_keeps_state(self, intake, scan_image):
        intake.select_file(scan_image)
        intake.classify()
        intake.submit_patient_details(VALID_FORM, reset=False)
        assert intake.state == IntakeState.AWAITING_PATIENT_DETAILS

    def test_missing_fields_are_reported(self, intake, scan_image):
        intake.select_file(scan_image)
        intake.classify()
        form = dict(VALID_FORM, last_name="  ", age="-3", gender="unknown")
        with pytest.raises(PatientFormError) as exc:
            intake.submit_patient_details(form)
        assert exc.value.fields == ["last_name", "age", "gender"]
        assert intake.state == IntakeState.AWAITING_PATIENT_DETAILS

    def test_submit_before_result_is_refused(self, intake, scan_image):
        intake.select_file(scan_image)
        with pytest.raises(RuntimeError):
            intake.submit_patient_details(VALID_FORM)

    def test_preview_handle_never_reaches_record(self, intake, scan_image):
        intake.select_file(scan_image)
        intake.classify()
        record = intake.submit_patient_details(VALID_FORM).record
        assert not is_preview_handle(record.image_url)
        assert all(not is_preview_handle(str(v)) for v in record.to_document().values())
