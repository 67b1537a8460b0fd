import os
import random
import time
from typing import Dict, Iterable

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from errors import MissingFileError, UnsupportedFileError

STAGING_PREFIX = ".staging-"


def extension_of(filename: str) -> str:
    _, ext = os.path.splitext(filename or "")
    return ext.lower().lstrip(".")


def check_upload(upload: FileStorage, allowed: Iterable[str]) -> None:
    """Reject missing files and anything other than images and PDFs."""
    if upload is None or not upload.filename:
        raise MissingFileError("Please upload a certificate file")

    allowed = set(allowed)
    mimetype = (upload.mimetype or "").lower()
    if extension_of(upload.filename) not in allowed or not any(t in mimetype for t in allowed):
        raise UnsupportedFileError(
            "Only images (JPEG, JPG, PNG, GIF) and PDF files are allowed",
            {"originalName": upload.filename},
        )


def unique_name(field: str, original: str) -> str:
    suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    ext = extension_of(secure_filename(original))
    return f"{field}-{suffix}.{ext}" if ext else f"{field}-{suffix}"


class StagedUpload:
    """An upload written under a hidden name, published by ``commit``.

    Raises ``OSError`` from the constructor when the folder is unusable, so
    callers can fail before recording anything.
    """

    def __init__(self, upload: FileStorage, folder: str, field: str = "certificate"):
        os.makedirs(folder, exist_ok=True)
        self.file_name = unique_name(field, upload.filename)
        self.original_name = upload.filename
        self.path = os.path.join(folder, self.file_name)
        self.staged_path = os.path.join(folder, STAGING_PREFIX + self.file_name)
        upload.save(self.staged_path)
        self.size = os.path.getsize(self.staged_path)

    def commit(self) -> Dict[str, object]:
        os.replace(self.staged_path, self.path)
        return {
            "fileName": self.file_name,
            "originalName": self.original_name,
            "fileSize": self.size,
        }

    def discard(self) -> None:
        if os.path.exists(self.staged_path):
            os.remove(self.staged_path)
