import os
import json
import uuid
import logging
import mimetypes
import http.client
import urllib.error
import urllib.request
from typing import Tuple

from model.models import ClassificationOutcome

logger = logging.getLogger(__name__)


class PredictionError(RuntimeError):
    """Classification could not be obtained from the inference endpoint."""


def _multipart_body(field: str, filename: str, data: bytes, content_type: str) -> Tuple[bytes, str]:
    boundary = uuid.uuid4().hex
    head = (
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="{field}"; filename="{filename}"\r\n'
        f"Content-Type: {content_type}\r\n\r\n"
    ).encode("utf-8")
    tail = f"\r\n--{boundary}--\r\n".encode("utf-8")
    return head + data + tail, f"multipart/form-data; boundary={boundary}"


class PredictionClient:
    """Posts one scan image to the inference endpoint and parses the label/confidence reply."""

    def __init__(self, url: str, timeout: float = 30.0):
        self.url = url
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "PredictionClient":
        return cls(settings.predict_url, timeout=settings.predict_timeout)

    def classify(self, image_path: str) -> ClassificationOutcome:
        try:
            with open(image_path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise PredictionError(f"Could not read image: {image_path}") from e

        content_type = mimetypes.guess_type(image_path)[0] or "application/octet-stream"
        body, header = _multipart_body("image", os.path.basename(image_path), data, content_type)
        req = urllib.request.Request(
            self.url,
            data=body,
            method="POST",
            headers={"Content-Type": header, "Accept": "application/json"},
        )

        logger.info("Requesting prediction for %s", os.path.basename(image_path))
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            logger.error("Prediction endpoint answered HTTP %s", e.code)
            raise PredictionError("Failed to get prediction") from e
        except (urllib.error.URLError, http.client.HTTPException, TimeoutError, OSError) as e:
            logger.error("Prediction endpoint unreachable: %s", e)
            raise PredictionError(f"Prediction service unavailable: {e}") from e
        except ValueError as e:
            raise PredictionError("Prediction service returned an invalid response") from e

        try:
            outcome = ClassificationOutcome.from_response(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise PredictionError("Prediction service returned an invalid response") from e

        logger.info("Prediction: %s (%s%%)", outcome.label, outcome.percentage)
        return outcome
