"""Thread-safe in-memory study session state and view navigation."""

VIEW_UPLOAD = 'upload'
VIEW_ANALYSIS = 'analysis'
VIEW_QUESTIONS = 'questions'
VIEW_QUIZ = 'quiz'
VIEW_QUICK_ANALYSIS = 'quick-analysis'
VIEW_PDF_PAGE_SELECT = 'pdf-page-select'
VIEW_COMPREHENSIVE_PDF = 'comprehensive-pdf'
VIEW_PDF_NAVIGATOR = 'pdf-navigator'

VIEWS = (
    VIEW_UPLOAD,
    VIEW_ANALYSIS,
    VIEW_QUESTIONS,
    VIEW_QUIZ,
    VIEW_QUICK_ANALYSIS,
    VIEW_PDF_PAGE_SELECT,
    VIEW_COMPREHENSIVE_PDF,
    VIEW_PDF_NAVIGATOR,
)

# Reset to upload is always allowed and is not listed.
VIEW_TRANSITIONS = {
    VIEW_UPLOAD: {VIEW_ANALYSIS, VIEW_PDF_PAGE_SELECT, VIEW_QUICK_ANALYSIS},
    VIEW_QUICK_ANALYSIS: {VIEW_QUIZ},
    VIEW_PDF_PAGE_SELECT: {VIEW_PDF_NAVIGATOR, VIEW_COMPREHENSIVE_PDF, VIEW_ANALYSIS},
    VIEW_PDF_NAVIGATOR: {VIEW_QUESTIONS},
    VIEW_COMPREHENSIVE_PDF: {VIEW_QUESTIONS},
    VIEW_ANALYSIS: {VIEW_QUESTIONS, VIEW_QUIZ},
    VIEW_QUESTIONS: {VIEW_QUIZ},
    VIEW_QUIZ: {VIEW_ANALYSIS},
}


class InvalidTransition(Exception):
    def __init__(self, current_view, target_view):
        super().__init__(f"Cannot move from '{current_view}' to '{target_view}'")
        self.current_view = current_view
        self.target_view = target_view


def can_transition(current_view, target_view):
    if target_view == VIEW_UPLOAD:
        return True
    return target_view in VIEW_TRANSITIONS.get(current_view, set())


def ensure_transition(session, target_view):
    current_view = session.get('view', VIEW_UPLOAD)
    if not can_transition(current_view, target_view):
        raise InvalidTransition(current_view, target_view)


def transition(session, target_view, now_ts):
    ensure_transition(session, target_view)
    session['view'] = target_view
    session['updated_at'] = now_ts
    return session


def new_session(session_id, uid, difficulty, output_language, now_ts):
    return {
        'session_id': session_id,
        'uid': uid or '',
        'view': VIEW_UPLOAD,
        'difficulty': difficulty,
        'output_language': output_language,
        'files': [],
        'analysis_results': [],
        'question_result': None,
        'pdf_info': None,
        'pdf_full_text': '',
        'comprehensive_results': None,
        'page_analyses': {},
        'quiz': None,
        'quiz_result': None,
        'created_at': now_ts,
        'updated_at': now_ts,
    }


def clear_state(session, now_ts):
    """Drop everything except identity and preferences (clearAppState)."""
    fresh = new_session(session['session_id'], session.get('uid', ''), session.get('difficulty'), session.get('output_language'), session.get('created_at', now_ts))
    session.clear()
    session.update(fresh)
    session['updated_at'] = now_ts
    return session


def get_session_snapshot(session_id, *, sessions_store, lock):
    with lock:
        session = sessions_store.get(session_id)
        if not isinstance(session, dict):
            return None
        return dict(session)


def mutate_session(session_id, mutator_fn, *, sessions_store, lock):
    with lock:
        session = sessions_store.get(session_id)
        if not isinstance(session, dict):
            return None
        mutator_fn(session)
        return dict(session)


def set_session(session_id, value, *, sessions_store, lock):
    with lock:
        sessions_store[session_id] = value
        return dict(value) if isinstance(value, dict) else value


def delete_session(session_id, *, sessions_store, lock):
    with lock:
        return sessions_store.pop(session_id, None)


def purge_expired_sessions(*, sessions_store, lock, ttl_seconds, now_ts):
    with lock:
        expired_ids = [
            session_id
            for session_id, session in list(sessions_store.items())
            if now_ts - float(session.get('updated_at', now_ts) or now_ts) > ttl_seconds
        ]
        for session_id in expired_ids:
            sessions_store.pop(session_id, None)
        return len(expired_ids)


def public_view(session, file_info_fn):
    """Snapshot safe to return to clients: no file bytes, no full text."""
    pdf_info = session.get('pdf_info') or None
    page_analyses = session.get('page_analyses') or {}
    quiz = session.get('quiz') or None
    return {
        'session_id': session.get('session_id', ''),
        'view': session.get('view', VIEW_UPLOAD),
        'difficulty': session.get('difficulty', ''),
        'output_language': session.get('output_language', ''),
        'files': [file_info_fn(entry) for entry in session.get('files', [])],
        'analysis_results': session.get('analysis_results', []),
        'question_result': session.get('question_result'),
        'pdf_info': dict(pdf_info) if pdf_info else None,
        'comprehensive_results': session.get('comprehensive_results'),
        'analyzed_pages': sorted(int(page) for page in page_analyses),
        'quiz': dict(quiz) if quiz else None,
        'quiz_result': session.get('quiz_result'),
        'created_at': session.get('created_at', 0),
        'updated_at': session.get('updated_at', 0),
    }
