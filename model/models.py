from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


@dataclass
class PatientRecord:
    record_id: str
    first_name: str
    last_name: str
    age: Optional[int]
    gender: str         # male / female / other
    id_number: str      # clinic identifier
    report: str
    prediction: str     # "Result: ...\nAccuracy: ...%"
    date_time: str      # ISO instant
    image_url: str      # remote ref (URL or GridFS id), never a local preview

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "PatientRecord":
        age = doc.get("age")
        try:
            age = int(age) if age is not None and age != "" else None
        except (TypeError, ValueError):
            age = None
        return cls(
            record_id=str(doc.get("_id", "")),
            first_name=doc.get("first_name", "") or "",
            last_name=doc.get("last_name", "") or "",
            age=age,
            gender=doc.get("gender", "") or "",
            id_number=doc.get("id_number", "") or "",
            report=doc.get("report", "") or "",
            prediction=doc.get("prediction", "") or "",
            date_time=doc.get("date_time", "") or "",
            image_url=doc.get("image_url", "") or "",
        )

    def to_document(self) -> Dict[str, Any]:
        # _id is assigned by the store and never written back
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "age": self.age,
            "gender": self.gender,
            "id_number": self.id_number,
            "report": self.report,
            "prediction": self.prediction,
            "date_time": self.date_time,
            "image_url": self.image_url,
        }


@dataclass(frozen=True)
class ClassificationOutcome:
    label: str
    confidence: float   # 0..1

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be within [0, 1], got {self.confidence}")

    @property
    def percentage(self) -> str:
        return f"{self.confidence * 100:.2f}"

    @property
    def text(self) -> str:
        return f"Result: {self.label}\nAccuracy: {self.percentage}%"

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> "ClassificationOutcome":
        label = payload["predicted_class"]
        confidence = float(payload["confidence"])
        return cls(label=str(label), confidence=confidence)
