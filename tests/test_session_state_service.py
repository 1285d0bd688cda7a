import threading

import pytest

from study_assistant.services import file_service
from study_assistant.services import session_state_service as sss


def _store():
    return {}, threading.RLock()


def test_allowed_and_blocked_transitions():
    session = sss.new_session("s1", "", "medium", "english", 0)

    sss.transition(session, sss.VIEW_PDF_PAGE_SELECT, 1)
    sss.transition(session, sss.VIEW_PDF_NAVIGATOR, 2)
    with pytest.raises(sss.InvalidTransition) as exc_info:
        sss.transition(session, sss.VIEW_QUIZ, 3)

    assert exc_info.value.current_view == sss.VIEW_PDF_NAVIGATOR
    assert session["view"] == sss.VIEW_PDF_NAVIGATOR
    assert session["updated_at"] == 2


def test_upload_is_always_reachable():
    for view in sss.VIEWS:
        assert sss.can_transition(view, sss.VIEW_UPLOAD)


def test_clear_state_keeps_identity_and_preferences():
    session = sss.new_session("s1", "u1", "hard", "tamil", 10)
    session.update({"view": sss.VIEW_QUIZ, "analysis_results": [{"summary": "x"}], "pdf_full_text": "text"})

    sss.clear_state(session, 50)

    assert session["view"] == sss.VIEW_UPLOAD
    assert session["analysis_results"] == []
    assert session["pdf_full_text"] == ""
    assert (session["uid"], session["difficulty"], session["output_language"]) == ("u1", "hard", "tamil")
    assert session["created_at"] == 10
    assert session["updated_at"] == 50


def test_store_helpers_copy_and_mutate():
    store, lock = _store()
    sss.set_session("s1", sss.new_session("s1", "", "medium", "english", 0), sessions_store=store, lock=lock)

    snapshot = sss.get_session_snapshot("s1", sessions_store=store, lock=lock)
    snapshot["view"] = "quiz"
    updated = sss.mutate_session("s1", lambda s: s.update(difficulty="easy"), sessions_store=store, lock=lock)

    assert store["s1"]["view"] == sss.VIEW_UPLOAD
    assert updated["difficulty"] == "easy"
    assert sss.mutate_session("missing", lambda s: None, sessions_store=store, lock=lock) is None
    assert sss.delete_session("s1", sessions_store=store, lock=lock)["session_id"] == "s1"
    assert sss.get_session_snapshot("s1", sessions_store=store, lock=lock) is None


def test_purge_expired_sessions_uses_last_update():
    store, lock = _store()
    store["old"] = sss.new_session("old", "", "medium", "english", 0)
    store["fresh"] = sss.new_session("fresh", "", "medium", "english", 950)

    removed = sss.purge_expired_sessions(sessions_store=store, lock=lock, ttl_seconds=100, now_ts=1000)

    assert removed == 1
    assert list(store) == ["fresh"]


def test_public_view_hides_bytes_and_full_text():
    session = sss.new_session("s1", "", "medium", "english", 0)
    session["files"] = [{"name": "a.png", "kind": "image", "mime_type": "image/png", "size_bytes": 4, "data": b"\x89PNG"}]
    session["pdf_full_text"] = "--- Page 1 ---\nsecret"
    session["page_analyses"] = {3: {"pageNumber": 3}, 1: {"pageNumber": 1}}

    view = sss.public_view(session, file_service.public_file_info)

    assert "pdf_full_text" not in view
    assert "data" not in view["files"][0]
    assert view["analyzed_pages"] == [1, 3]
