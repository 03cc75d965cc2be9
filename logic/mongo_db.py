import os
import io
import logging
import urllib.request
from typing import Any, Dict, List, Optional
from PIL import Image
from pymongo import MongoClient
from pymongo.errors import PyMongoError
from bson import ObjectId
from bson.errors import InvalidId
import gridfs

from model.models import PatientRecord

logger = logging.getLogger(__name__)


class RecordStoreError(RuntimeError):
    """Raised when the patient store cannot be read or written."""


def _is_url(s: str) -> bool:
    return s.startswith("http://") or s.startswith("https://")


class MongoDB:
    def __init__(
        self,
        mongo_uri: Optional[str] = None,
        db_name: str = "keratoscan",
        patients_collection: str = "patients",
        client: Optional[MongoClient] = None,
    ):
        self.db_name = db_name
        self.patients_collection = patients_collection

        if client is None:
            if not mongo_uri:
                raise RuntimeError("Missing MONGO_URI in environment or .env file")
            client = MongoClient(mongo_uri)

        self.client = client
        self.db = self.client[self.db_name]
        self.patients = self.db[self.patients_collection]
        self.fs = gridfs.GridFS(self.db)

    @classmethod
    def from_settings(cls, settings) -> "MongoDB":
        return cls(
            mongo_uri=settings.mongo_uri,
            db_name=settings.db_name,
            patients_collection=settings.patients_collection,
        )

    # -------------------------------------------------------------------------
    # Read / write
    # -------------------------------------------------------------------------

    def list_patients(self) -> List[PatientRecord]:
        try:
            docs = list(self.patients.find({}))
        except PyMongoError as e:
            raise RecordStoreError(f"Failed to fetch patient records: {e}") from e
        logger.debug("Fetched %d patient documents", len(docs))
        return [PatientRecord.from_document(doc) for doc in docs]

    def insert_patient(self, record: PatientRecord, image_path: Optional[str] = None) -> str:
        """
        Insert a new patient document and return its store-assigned id.

        - A local scan image is uploaded to GridFS and its ObjectId string
          becomes the record's image reference
        - An existing remote reference on the record is kept as is
        """
        doc = record.to_document()
        file_id = None

        if image_path:
            try:
                with open(image_path, "rb") as f:
                    file_id = self.fs.put(f, filename=os.path.basename(image_path))
            except (OSError, PyMongoError) as e:
                raise RecordStoreError(f"Failed to upload image '{image_path}' to GridFS: {e}") from e
            doc["image_url"] = str(file_id)

        try:
            result = self.patients.insert_one(doc)
        except PyMongoError as e:
            if file_id is not None:
                self._discard_file(file_id)
            raise RecordStoreError(f"Failed to insert patient {record.id_number}: {e}") from e

        logger.info("Inserted patient %s with _id=%s", record.id_number, result.inserted_id)
        return str(result.inserted_id)

    def update_prediction(self, record_id: str, prediction: str) -> bool:
        try:
            result = self.patients.update_one(
                self._id_filter(record_id),
                {"$set": {"prediction": prediction}},
            )
        except PyMongoError as e:
            raise RecordStoreError(f"Failed to update patient {record_id}: {e}") from e
        if result.matched_count == 0:
            logger.warning("No patient with _id=%s to update", record_id)
        return result.matched_count > 0

    def load_image(self, ref: str) -> Image.Image:
        raw = self._load_bytes(ref)
        img = Image.open(io.BytesIO(raw))
        img.load()
        return img

    def close(self):
        self.client.close()

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _id_filter(record_id: str) -> Dict[str, Any]:
        try:
            return {"_id": ObjectId(record_id)}
        except (InvalidId, TypeError):
            return {"_id": record_id}

    def _discard_file(self, file_id):
        # orphaned upload from a failed insert
        try:
            self.fs.delete(file_id)
        except PyMongoError as e:
            logger.warning("Could not remove orphaned GridFS file %s: %s", file_id, e)

    def _load_bytes(self, ref: str) -> bytes:
        if _is_url(ref):
            req = urllib.request.Request(ref, headers={"User-Agent": "Mozilla/5.0"})
            with urllib.request.urlopen(req, timeout=30) as resp:
                return resp.read()
        if os.path.exists(ref):
            with open(ref, "rb") as f:
                return f.read()
        try:
            oid = ObjectId(ref)
        except (InvalidId, TypeError) as e:
            raise ValueError(
                "Image ref must be a URL, an existing local path, or a GridFS ObjectId string. "
                f"Got: {ref}"
            ) from e
        grid_out = self.fs.get(oid)
        return grid_out.read()
