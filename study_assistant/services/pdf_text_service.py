"""Per-page PDF text extraction with explicit page markers."""

import re

import fitz  # PyMuPDF

PAGE_MARKER_TEMPLATE = '--- Page {page} ---'
PAGE_MARKER_RE = re.compile(r'^--- Page (\d+) ---$', re.MULTILINE)
QUICK_RANGE_SIZES = (5, 10, 25)


def extract_page_texts(pdf_bytes):
    texts = []
    with fitz.open(stream=bytes(pdf_bytes), filetype='pdf') as doc:
        for page in doc:
            texts.append((page.get_text('text') or '').strip())
    return texts


def join_page_texts(page_texts):
    blocks = []
    for index, text in enumerate(page_texts, 1):
        blocks.append(PAGE_MARKER_TEMPLATE.format(page=index))
        blocks.append(text)
    return '\n'.join(blocks)


def extract_all_pdf_text(pdf_bytes):
    return join_page_texts(extract_page_texts(pdf_bytes))


def split_pages(full_text):
    """Return ``{page_number: text}`` for every marker found in the text."""
    pages = {}
    matches = list(PAGE_MARKER_RE.finditer(full_text or ''))
    for idx, match in enumerate(matches):
        body_start = match.end()
        body_end = matches[idx + 1].start() if idx + 1 < len(matches) else len(full_text)
        pages[int(match.group(1))] = full_text[body_start:body_end].strip()
    return pages


def find_total_pages(full_text):
    numbers = [int(m.group(1)) for m in PAGE_MARKER_RE.finditer(full_text or '')]
    return max(numbers) if numbers else 0


def extract_page_range(full_text, start_page, end_page):
    total_pages = find_total_pages(full_text)
    if total_pages <= 0:
        return ''
    start = max(1, int(start_page))
    end = min(total_pages, int(end_page))
    if start > end:
        return ''
    pages = split_pages(full_text)
    blocks = []
    for page_number in range(start, end + 1):
        if page_number not in pages:
            continue
        blocks.append(PAGE_MARKER_TEMPLATE.format(page=page_number))
        blocks.append(pages[page_number])
    return '\n'.join(blocks)


def page_body(full_text, page_number):
    return split_pages(full_text).get(int(page_number), '')


def quick_page_ranges(total_pages):
    total = max(0, int(total_pages or 0))
    if total <= 0:
        return []
    ranges = [
        {'label': f'First {size} Pages', 'start': 1, 'end': min(size, total)}
        for size in QUICK_RANGE_SIZES
    ]
    ranges.append({'label': 'All Pages', 'start': 1, 'end': total})
    return ranges


def parse_page_range(raw_start, raw_end, total_pages):
    """Validate a requested page range; raises ValueError on bad input."""
    try:
        start = int(raw_start)
        end = int(raw_end)
    except (TypeError, ValueError):
        raise ValueError('start_page and end_page must be integers')
    if start < 1 or end < 1:
        raise ValueError('Page numbers start at 1')
    if start > end:
        raise ValueError('start_page must not be greater than end_page')
    if total_pages and end > total_pages:
        raise ValueError(f'end_page exceeds the document length ({total_pages} pages)')
    return start, end
