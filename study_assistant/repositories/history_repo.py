"""Firestore accessors for the study history collection."""

from .query_utils import apply_order_desc, apply_where

STUDY_HISTORY_COLLECTION = 'studyHistory'


def history_doc_ref(db, record_id):
    return db.collection(STUDY_HISTORY_COLLECTION).document(record_id)


def create_history_doc_ref(db):
    return db.collection(STUDY_HISTORY_COLLECTION).document()


def get_history_doc(db, record_id):
    return history_doc_ref(db, record_id).get()


def list_history_by_uid(db, uid, limit=None):
    query = apply_order_desc(apply_where(db.collection(STUDY_HISTORY_COLLECTION), 'userId', '==', uid), 'timestamp')
    if limit:
        query = query.limit(limit)
    return list(query.stream())


def delete_history_doc(db, record_id):
    history_doc_ref(db, record_id).delete()
