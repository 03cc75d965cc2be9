import uuid
import logging
from typing import Dict, Optional, Tuple
from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

PREVIEW_SCHEME = "preview://"
PREVIEW_SIZE = (480, 480)


def is_preview_handle(ref: Optional[str]) -> bool:
    return bool(ref) and ref.startswith(PREVIEW_SCHEME)


class PreviewStore:
    """
    Holds in-memory thumbnails of locally selected scans.

    Handles look like `preview://<hex>` so they can never be mistaken for a
    stored image reference (URL or GridFS id). Every `acquire` must be paired
    with a `release`.
    """

    def __init__(self, size: Tuple[int, int] = PREVIEW_SIZE):
        self.size = size
        self._images: Dict[str, Image.Image] = {}

    def acquire(self, path: str) -> str:
        with Image.open(path) as img:
            img = ImageOps.exif_transpose(img).convert("RGBA")
        img.thumbnail(self.size)
        handle = f"{PREVIEW_SCHEME}{uuid.uuid4().hex}"
        self._images[handle] = img
        logger.debug("Acquired preview %s for %s", handle, path)
        return handle

    def get(self, handle: str) -> Optional[Image.Image]:
        return self._images.get(handle)

    def release(self, handle: Optional[str]):
        if handle and self._images.pop(handle, None) is not None:
            logger.debug("Released preview %s", handle)

    def release_all(self):
        self._images.clear()

    def __len__(self):
        return len(self._images)
