import io

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from study_assistant.services import file_service

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
PDF_BYTES = b"%PDF-1.4\n%fake\n"


def _upload(data, filename, content_type):
    return FileStorage(stream=io.BytesIO(data), filename=filename, content_type=content_type)


def test_classify_upload_uses_mime_then_extension():
    assert file_service.classify_upload("notes.png", "image/png") == "image"
    assert file_service.classify_upload("scan", "image/heic") == "image"
    assert file_service.classify_upload("book.pdf", "application/octet-stream") == "pdf"
    assert file_service.classify_upload("book", "application/pdf") == "pdf"
    assert file_service.classify_upload("notes.docx", "application/msword") == ""


def test_signatures_are_checked():
    assert file_service.bytes_have_pdf_signature(PDF_BYTES)
    assert not file_service.bytes_have_pdf_signature(PNG_BYTES)
    assert file_service.bytes_have_image_signature(PNG_BYTES)
    assert file_service.bytes_have_image_signature(b"\xff\xd8\xff\xe0" + b"\x00" * 8)
    assert file_service.bytes_have_image_signature(b"RIFF\x00\x00\x00\x00WEBPVP8 ")
    assert not file_service.bytes_have_image_signature(b"hello world!")


def test_validate_uploads_keeps_valid_files_and_reports_rejects():
    accepted, rejected = file_service.validate_uploads(
        [
            _upload(PNG_BYTES, "Group 4 notes.png", "image/png"),
            _upload(b"plain text", "notes.txt", "text/plain"),
            _upload(b"not a pdf", "fake.pdf", "application/pdf"),
            _upload(PDF_BYTES, "book.pdf", "application/pdf"),
        ],
        max_files=10,
        max_file_bytes=1024,
        secure_filename_fn=secure_filename,
    )

    assert [entry["name"] for entry in accepted] == ["Group_4_notes.png", "book.pdf"]
    assert accepted[1]["kind"] == "pdf"
    assert accepted[1]["mime_type"] == "application/pdf"
    assert len(rejected) == 2
    assert file_service.UNSUPPORTED_FILES_MESSAGE in rejected
    assert any("not a valid PDF" in message for message in rejected)


def test_validate_uploads_enforces_size_and_count_limits():
    big = _upload(PNG_BYTES + b"\x00" * 2048, "big.png", "image/png")
    empty = _upload(b"", "empty.png", "image/png")
    extra = [_upload(PNG_BYTES, f"p{i}.png", "image/png") for i in range(3)]

    accepted, rejected = file_service.validate_uploads(
        [big, empty] + extra,
        max_files=4,
        max_file_bytes=1024,
        secure_filename_fn=secure_filename,
    )

    assert [entry["name"] for entry in accepted] == ["p0.png", "p1.png"]
    assert any("exceeds" in message for message in rejected)
    assert any("is empty" in message for message in rejected)
    assert any("1 ignored" in message for message in rejected)


def test_public_file_info_never_exposes_bytes():
    entry, error = file_service.read_upload(
        _upload(PNG_BYTES, "a.png", "image/png"),
        max_file_bytes=1024,
        secure_filename_fn=secure_filename,
    )

    assert error == ""
    info = file_service.public_file_info(entry)
    assert "data" not in info
    assert info == {"name": "a.png", "kind": "image", "mime_type": "image/png", "size_bytes": len(PNG_BYTES)}


def test_get_mime_type_maps_known_extensions():
    assert file_service.get_mime_type("a.JPG") == "image/jpeg"
    assert file_service.get_mime_type("a.pdf") == "application/pdf"
    assert file_service.get_mime_type("a.unknown") == "application/octet-stream"
