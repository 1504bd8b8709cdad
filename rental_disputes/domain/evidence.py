"""Evidence file validation rules"""

import os
from typing import Iterable

from rental_disputes.domain.exceptions import ValidationError
from rental_disputes.domain.models import EvidenceFile

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp"})
VIDEO_EXTENSIONS = frozenset({".mp4", ".mov", ".avi", ".mkv", ".webm", ".flv", ".wmv"})


def classify_file(filename: str) -> str:
    """Return "image" or "video" based on the extension"""
    extension = os.path.splitext(filename)[1].lower()
    if extension in IMAGE_EXTENSIONS:
        return "image"
    if extension in VIDEO_EXTENSIONS:
        return "video"
    raise ValidationError(
        f"File '{filename}' has invalid format. Only images (JPG, PNG, GIF, WebP, BMP) "
        "or videos (MP4, MOV, AVI, MKV, WebM, FLV, WMV) are accepted.",
        entity=filename,
        field="evidence",
    )


def validate_evidence_files(files: Iterable[EvidenceFile], max_image_bytes: int, max_video_bytes: int) -> None:
    """Check format and size of every file before anything is uploaded"""
    for file in files:
        kind = classify_file(file.filename)
        limit = max_image_bytes if kind == "image" else max_video_bytes
        if file.size > limit:
            raise ValidationError(
                f"File '{file.filename}' exceeds the allowed size of {limit // (1024 * 1024)}MB",
                entity=file.filename,
                field="evidence",
            )
