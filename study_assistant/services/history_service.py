"""Study history persistence in Firestore with uploaded files in Cloud Storage."""

import time
from datetime import datetime, timezone

from firebase_admin import firestore

from study_assistant.logging_config import logger
from study_assistant.repositories import history_repo

HISTORY_TYPES = ('analysis', 'quiz')
STORAGE_PREFIX = 'study-files'
MAX_HISTORY_RECORDS = 200


def storage_path_for(uid, file_name, now_ms):
    return f'{STORAGE_PREFIX}/{uid}/{int(now_ms)}_{file_name}'


def upload_files(uid, files, *, bucket, now_ms_fn=None):
    """Upload session file entries; returns ``(file_urls, storage_paths)``."""
    now_ms_fn = now_ms_fn or (lambda: int(time.time() * 1000))
    file_urls = []
    storage_paths = []
    for entry in files or []:
        path = storage_path_for(uid, entry.get('name', 'upload'), now_ms_fn())
        blob = bucket.blob(path)
        blob.upload_from_string(bytes(entry.get('data', b'')), content_type=entry.get('mime_type') or 'application/octet-stream')
        blob.make_public()
        file_urls.append(blob.public_url)
        storage_paths.append(path)
    return file_urls, storage_paths


def build_analysis_data(data, file_name=''):
    if not isinstance(data, list) or not data:
        return None
    analysis = data[0] if isinstance(data[0], dict) else {}
    return {
        'keyPoints': analysis.get('keyPoints') or [],
        'studyPoints': analysis.get('studyPoints') or [],
        'summary': analysis.get('summary') or '',
        'tnpscRelevance': analysis.get('tnpscRelevance') or '',
        'tnpscCategories': analysis.get('tnpscCategories') or [],
        'mainTopic': analysis.get('mainTopic') or file_name or 'Study Material',
    }


def build_quiz_data(data, options):
    data = data if isinstance(data, dict) else {}
    return {
        'questions': data.get('questions') or [],
        'answers': options.get('quizAnswers') or [],
        'score': options.get('score') or 0,
        'totalQuestions': options.get('totalQuestions') or 0,
        'percentage': options.get('percentage') or 0,
        'difficulty': options.get('difficulty') or '',
    }


def save_study_history(uid, record_type, data, options, *, db, bucket=None, now_ms_fn=None):
    """Write one history record and return its document id."""
    if record_type not in HISTORY_TYPES:
        raise ValueError(f'Unknown history type: {record_type}')
    options = dict(options or {})
    file_urls, storage_paths = [], []
    if options.get('files'):
        if bucket is None:
            logger.warning(f"Storage bucket not configured; skipping file upload for {uid}")
        else:
            file_urls, storage_paths = upload_files(uid, options['files'], bucket=bucket, now_ms_fn=now_ms_fn)

    analysis_data = None
    quiz_data = None
    if record_type == 'analysis':
        analysis_data = build_analysis_data(data, options.get('fileName', ''))
    else:
        quiz_data = build_quiz_data(data, options)

    record = {
        'userId': uid,
        'timestamp': firestore.SERVER_TIMESTAMP,
        'type': record_type,
        'fileName': options.get('fileName'),
        'difficulty': options.get('difficulty') or '',
        'language': options.get('language') or '',
        'score': options.get('score'),
        'totalQuestions': options.get('totalQuestions'),
        'percentage': options.get('percentage'),
        'data': data,
        'fileUrls': file_urls,
        'storagePaths': storage_paths,
        'analysisData': analysis_data,
        'quizData': quiz_data,
    }
    doc_ref = history_repo.create_history_doc_ref(db)
    doc_ref.set(record)
    return doc_ref.id


def _timestamp_to_datetime(value):
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    return None


def serialize_record(doc_id, data):
    record = dict(data or {})
    record['id'] = doc_id
    moment = _timestamp_to_datetime(record.get('timestamp'))
    record['timestamp'] = moment.isoformat() if moment else None
    record.setdefault('fileUrls', [])
    record.setdefault('storagePaths', [])
    return record


def get_study_history(uid, *, db, limit=MAX_HISTORY_RECORDS):
    docs = history_repo.list_history_by_uid(db, uid, limit)
    return [serialize_record(doc.id, doc.to_dict()) for doc in docs]


def get_record(record_id, *, db):
    """Return ``(record, exists)`` for one history document."""
    doc = history_repo.get_history_doc(db, record_id)
    if not doc.exists:
        return None, False
    return serialize_record(doc.id if getattr(doc, 'id', None) else record_id, doc.to_dict()), True


def delete_study_history(record_id, storage_paths, *, db, bucket=None):
    """Delete the document, then its stored files; returns how many files were removed."""
    history_repo.delete_history_doc(db, record_id)
    removed = 0
    if bucket is None:
        return removed
    for path in storage_paths or []:
        try:
            bucket.blob(path).delete()
            removed += 1
        except Exception as exc:
            logger.warning(f"Warning: could not delete stored file {path}: {exc}")
    return removed


def history_stats(records):
    quizzes = [r for r in records if r.get('type') == 'quiz']
    percentages = [int(r.get('percentage') or 0) for r in quizzes]
    return {
        'total': len(records),
        'analysisCount': sum(1 for r in records if r.get('type') == 'analysis'),
        'quizCount': len(quizzes),
        'averageScore': round(sum(percentages) / len(percentages)) if percentages else 0,
    }


def format_record_date(timestamp):
    moment = None
    if isinstance(timestamp, str) and timestamp:
        try:
            moment = datetime.fromisoformat(timestamp)
        except ValueError:
            moment = None
    else:
        moment = _timestamp_to_datetime(timestamp)
    if moment is None:
        moment = datetime.now(timezone.utc)
    return moment.strftime('%d/%m/%Y')


def report_payload_for_record(record):
    """Return ``(title, content, report_type)`` for a history record download."""
    date_label = format_record_date(record.get('timestamp'))
    if record.get('type') == 'quiz' and record.get('quizData'):
        quiz = record['quizData']
        answers = quiz.get('answers') or []
        content = {
            'score': quiz.get('score', 0),
            'totalQuestions': quiz.get('totalQuestions', 0),
            'percentage': quiz.get('percentage', 0),
            'difficulty': quiz.get('difficulty', ''),
            'answers': answers,
        }
        return f'Quiz Results - {date_label}', content, 'quiz-results'
    if record.get('type') == 'analysis' and record.get('analysisData'):
        return f'Study Analysis - {date_label}', [record['analysisData']], 'analysis'
    if record.get('type') == 'quiz':
        return f'Quiz Results - {date_label}', record.get('data'), 'quiz-results'
    return f'Study Analysis - {date_label}', record.get('data'), 'analysis'
