import fitz
import pytest

from study_assistant.services import pdf_text_service

MARKED_TEXT = "\n".join([
    "--- Page 1 ---",
    "Sangam age literature",
    "--- Page 2 ---",
    "Chola administration",
    "--- Page 3 ---",
    "Vijayanagara empire",
])


def _make_pdf(page_texts):
    doc = fitz.open()
    for text in page_texts:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


def test_extract_all_pdf_text_marks_every_page():
    full_text = pdf_text_service.extract_all_pdf_text(_make_pdf(["First page", "", "Third page"]))

    assert pdf_text_service.find_total_pages(full_text) == 3
    pages = pdf_text_service.split_pages(full_text)
    assert "First page" in pages[1]
    assert pages[2] == ""
    assert "Third page" in pages[3]


def test_find_total_pages_without_markers_is_zero():
    assert pdf_text_service.find_total_pages("plain text with no markers") == 0
    assert pdf_text_service.find_total_pages("") == 0


def test_extract_page_range_is_inclusive_and_clamped():
    middle = pdf_text_service.extract_page_range(MARKED_TEXT, 2, 2)
    clamped = pdf_text_service.extract_page_range(MARKED_TEXT, 0, 99)

    assert middle == "--- Page 2 ---\nChola administration"
    assert "Sangam" in clamped and "Vijayanagara" in clamped
    assert pdf_text_service.extract_page_range(MARKED_TEXT, 3, 2) == ""


def test_page_body_returns_single_page_text():
    assert pdf_text_service.page_body(MARKED_TEXT, 3) == "Vijayanagara empire"
    assert pdf_text_service.page_body(MARKED_TEXT, 7) == ""


def test_quick_page_ranges_clamp_to_document_length():
    ranges = pdf_text_service.quick_page_ranges(8)

    assert [r["label"] for r in ranges] == ["First 5 Pages", "First 10 Pages", "First 25 Pages", "All Pages"]
    assert [r["end"] for r in ranges] == [5, 8, 8, 8]
    assert pdf_text_service.quick_page_ranges(0) == []


def test_parse_page_range_rejects_bad_input():
    assert pdf_text_service.parse_page_range("2", 4, 10) == (2, 4)
    with pytest.raises(ValueError):
        pdf_text_service.parse_page_range("x", 4, 10)
    with pytest.raises(ValueError):
        pdf_text_service.parse_page_range(5, 4, 10)
    with pytest.raises(ValueError):
        pdf_text_service.parse_page_range(1, 11, 10)
