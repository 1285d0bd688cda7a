"""Upload validation helpers for study images and PDFs."""

ALLOWED_IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp', 'bmp'}
ALLOWED_PDF_EXTENSIONS = {'pdf'}
UNSUPPORTED_FILES_MESSAGE = 'Only image files (PNG, JPG, etc.) and PDF files are supported'


def file_extension(filename):
    parts = str(filename or '').rsplit('.', 1)
    return parts[1].lower() if len(parts) > 1 else ''


def allowed_file(filename, allowed_extensions):
    return '.' in str(filename or '') and file_extension(filename) in allowed_extensions


def classify_upload(filename, mimetype):
    mime = str(mimetype or '').split(';', 1)[0].strip().lower()
    if mime == 'application/pdf' or mime == 'application/x-pdf':
        return 'pdf'
    if mime.startswith('image/'):
        return 'image'
    if allowed_file(filename, ALLOWED_PDF_EXTENSIONS):
        return 'pdf'
    if allowed_file(filename, ALLOWED_IMAGE_EXTENSIONS):
        return 'image'
    return ''


def bytes_have_pdf_signature(data):
    return bytes(data[:5]) == b'%PDF-'


def bytes_have_image_signature(data):
    header = bytes(data[:16])
    if len(header) < 4:
        return False
    if header.startswith(b'\x89PNG\r\n\x1a\n'):
        return True
    if header.startswith(b'\xff\xd8\xff'):
        return True
    if header.startswith(b'GIF87a') or header.startswith(b'GIF89a'):
        return True
    if header.startswith(b'RIFF') and header[8:12] == b'WEBP':
        return True
    if header.startswith(b'BM'):
        return True
    return False


def get_mime_type(filename):
    mime_types = {
        'pdf': 'application/pdf',
        'png': 'image/png',
        'jpg': 'image/jpeg',
        'jpeg': 'image/jpeg',
        'gif': 'image/gif',
        'webp': 'image/webp',
        'bmp': 'image/bmp',
    }
    return mime_types.get(file_extension(filename), 'application/octet-stream')


def read_upload(uploaded_file, *, max_file_bytes, secure_filename_fn):
    """Read one werkzeug FileStorage into a session file entry.

    Returns ``(entry, error)``; exactly one of them is empty.
    """
    if not uploaded_file or not uploaded_file.filename:
        return None, 'File must be selected'
    kind = classify_upload(uploaded_file.filename, uploaded_file.mimetype)
    if not kind:
        return None, UNSUPPORTED_FILES_MESSAGE
    safe_name = secure_filename_fn(uploaded_file.filename) or f'upload.{"pdf" if kind == "pdf" else "png"}'
    data = uploaded_file.read(max_file_bytes + 1)
    if not data:
        return None, f'{safe_name} is empty.'
    if len(data) > max_file_bytes:
        return None, f'{safe_name} exceeds the {max_file_bytes // (1024 * 1024)}MB limit.'
    if kind == 'pdf' and not bytes_have_pdf_signature(data):
        return None, f'{safe_name} is not a valid PDF file.'
    if kind == 'image' and not bytes_have_image_signature(data):
        return None, f'{safe_name} is not a supported image file.'
    mime_type = str(uploaded_file.mimetype or '').split(';', 1)[0].strip().lower()
    if kind == 'pdf':
        mime_type = 'application/pdf'
    elif not mime_type.startswith('image/'):
        mime_type = get_mime_type(safe_name)
    return {
        'name': safe_name,
        'kind': kind,
        'mime_type': mime_type,
        'size_bytes': len(data),
        'data': data,
    }, ''


def validate_uploads(uploaded_files, *, max_files, max_file_bytes, secure_filename_fn):
    """Keep every acceptable upload; report the rest.

    Returns ``(accepted_entries, rejected_messages)``.
    """
    accepted = []
    rejected = []
    for uploaded_file in list(uploaded_files or [])[:max_files]:
        entry, error = read_upload(uploaded_file, max_file_bytes=max_file_bytes, secure_filename_fn=secure_filename_fn)
        if error:
            rejected.append(error)
            continue
        accepted.append(entry)
    overflow = len(list(uploaded_files or [])) - max_files
    if overflow > 0:
        rejected.append(f'Only {max_files} files can be uploaded at once; {overflow} ignored.')
    return accepted, rejected


def public_file_info(entry):
    return {
        'name': entry.get('name', ''),
        'kind': entry.get('kind', ''),
        'mime_type': entry.get('mime_type', ''),
        'size_bytes': int(entry.get('size_bytes', 0) or 0),
    }
