"""Unit tests for evidence file validation"""

import pytest
from rental_disputes.domain.evidence import classify_file, validate_evidence_files
from rental_disputes.domain.exceptions import ValidationError
from rental_disputes.domain.models import EvidenceFile

MB = 1024 * 1024


def test_classify_file_by_extension():
    assert classify_file("dent.JPG") == "image"
    assert classify_file("walkaround.webm") == "video"


def test_classify_file_rejects_documents():
    with pytest.raises(ValidationError) as exc:
        classify_file("invoice.pdf")
    assert exc.value.entity == "invoice.pdf"


def test_validate_evidence_size_limits():
    """Test images and videos have separate size ceilings"""
    big_image = EvidenceFile("big.png", "image/png", b"0" * (2 * MB))
    big_video = EvidenceFile("big.mp4", "video/mp4", b"0" * (2 * MB))

    validate_evidence_files([big_video], max_image_bytes=MB, max_video_bytes=4 * MB)
    with pytest.raises(ValidationError) as exc:
        validate_evidence_files([big_image], max_image_bytes=MB, max_video_bytes=4 * MB)
    assert "exceeds the allowed size of 1MB" in exc.value.message


def test_validate_evidence_empty_batch():
    validate_evidence_files([], max_image_bytes=MB, max_video_bytes=MB)
