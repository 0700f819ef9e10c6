"""Tests for the shared data types."""

from pathlib import Path

import pytest

from lexextract.models import DocumentFile, ExtractionResult, PageResult, file_extension


def test_page_result_validates_page_number():
    with pytest.raises(ValueError):
        PageResult(page_number=0, text="", confidence=0.5)


@pytest.mark.parametrize("confidence", [-0.01, 1.01])
def test_page_result_validates_confidence(confidence):
    with pytest.raises(ValueError):
        PageResult(page_number=1, text="", confidence=confidence)


def test_from_pages_joins_text_and_counts_pages():
    pages = [
        PageResult(page_number=1, text="first", confidence=0.95),
        PageResult(page_number=2, text="", confidence=0.95),
        PageResult(page_number=3, text="third", confidence=0.95),
    ]
    result = ExtractionResult.from_pages(
        pages, confidence=0.95, file_size_bytes=123, processing_time_ms=4.5
    )
    assert result.text == "first\n\nthird"
    assert result.metadata.page_count == len(result.pages) == 3
    assert result.metadata.file_size_bytes == 123
    assert [p.page_number for p in result.pages] == [1, 2, 3]


def test_from_pages_rejects_gaps():
    pages = [
        PageResult(page_number=1, text="a", confidence=1.0),
        PageResult(page_number=3, text="c", confidence=1.0),
    ]
    with pytest.raises(ValueError):
        ExtractionResult.from_pages(
            pages, confidence=1.0, file_size_bytes=2, processing_time_ms=0.0
        )


def test_aggregate_confidence_validated():
    with pytest.raises(ValueError):
        ExtractionResult.from_pages(
            [PageResult(page_number=1, text="a", confidence=1.0)],
            confidence=2.0,
            file_size_bytes=1,
            processing_time_ms=0.0,
        )


def test_to_dict():
    result = ExtractionResult.from_pages(
        [PageResult(page_number=1, text="hello", confidence=1.0)],
        confidence=1.0,
        file_size_bytes=5,
        processing_time_ms=0.1,
    )
    data = result.to_dict()
    assert data["text"] == "hello"
    assert data["pages"] == [{"page_number": 1, "text": "hello", "confidence": 1.0}]
    assert data["metadata"]["page_count"] == 1


def test_document_file_from_path_guesses_mime_type(tmp_path: Path):
    path = tmp_path / "Scan.PNG"
    path.write_bytes(b"\x89PNG")
    file = DocumentFile.from_path(path)
    assert file.mime_type == "image/png"
    assert file.name == "Scan.PNG"
    assert file.extension == ".png"
    assert file.size == 4


def test_document_file_from_path_explicit_mime_type(tmp_path: Path):
    path = tmp_path / "data.bin"
    path.write_bytes(b"abc")
    assert DocumentFile.from_path(path, mime_type="text/plain").mime_type == "text/plain"


@pytest.mark.parametrize(
    "name, expected",
    [("Report.PDF", ".pdf"), ("archive.tar.gz", ".gz"), ("README", ""), (None, "")],
)
def test_file_extension(name, expected):
    assert file_extension(name) == expected
