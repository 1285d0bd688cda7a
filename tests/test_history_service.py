from datetime import datetime, timezone

from firebase_admin import firestore

from study_assistant.services import history_service


class _FakeDocSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class _FakeDocRef:
    def __init__(self, collection, doc_id):
        self._collection = collection
        self.id = doc_id

    def set(self, data):
        stored = dict(data)
        if stored.get("timestamp") is firestore.SERVER_TIMESTAMP:
            stored["timestamp"] = self._collection.now
        self._collection.docs[self.id] = stored

    def get(self):
        return _FakeDocSnapshot(self.id, self._collection.docs.get(self.id))

    def delete(self):
        self._collection.docs.pop(self.id, None)


class _FakeQuery:
    def __init__(self, docs):
        self._docs = docs

    def where(self, *args, **kwargs):
        if "filter" in kwargs:
            raise TypeError("positional filters only")
        field, _op, value = args
        return _FakeQuery({k: v for k, v in self._docs.items() if v.get(field) == value})

    def order_by(self, field, direction=None):
        ordered = sorted(self._docs.items(), key=lambda item: item[1][field], reverse=direction == "DESCENDING")
        return _FakeQuery(dict(ordered))

    def limit(self, _count):
        return self

    def stream(self):
        return [_FakeDocSnapshot(k, v) for k, v in self._docs.items()]


class _FakeCollection(_FakeQuery):
    def __init__(self):
        self.docs = {}
        self.now = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)
        self._counter = 0
        super().__init__(self.docs)

    def document(self, doc_id=None):
        if doc_id is None:
            self._counter += 1
            doc_id = f"rec{self._counter}"
        return _FakeDocRef(self, doc_id)


class _FakeDB:
    def __init__(self):
        self.collections = {}

    def collection(self, name):
        return self.collections.setdefault(name, _FakeCollection())


class _FakeBlob:
    def __init__(self, bucket, path):
        self._bucket = bucket
        self.name = path
        self.public_url = f"https://storage.example/{path}"

    def upload_from_string(self, data, content_type=None):
        self._bucket.uploaded[self.name] = (data, content_type)

    def make_public(self):
        self._bucket.public.add(self.name)

    def delete(self):
        if self.name in self._bucket.fail_deletes:
            raise RuntimeError("storage unavailable")
        self._bucket.deleted.append(self.name)


class _FakeBucket:
    def __init__(self, fail_deletes=()):
        self.uploaded = {}
        self.public = set()
        self.deleted = []
        self.fail_deletes = set(fail_deletes)

    def blob(self, path):
        return _FakeBlob(self, path)


def test_save_analysis_uploads_files_and_builds_analysis_data():
    db, bucket = _FakeDB(), _FakeBucket()
    analyses = [{"keyPoints": ["k1"], "summary": "s", "studyPoints": []}]

    record_id = history_service.save_study_history(
        "u1",
        "analysis",
        analyses,
        {"fileName": "notes.png", "difficulty": "medium", "language": "english", "files": [{"name": "notes.png", "data": b"png", "mime_type": "image/png"}]},
        db=db,
        bucket=bucket,
        now_ms_fn=lambda: 1700000000000,
    )

    stored = db.collection("studyHistory").docs[record_id]
    assert stored["userId"] == "u1"
    assert stored["storagePaths"] == ["study-files/u1/1700000000000_notes.png"]
    assert stored["fileUrls"] == ["https://storage.example/study-files/u1/1700000000000_notes.png"]
    assert bucket.uploaded["study-files/u1/1700000000000_notes.png"] == (b"png", "image/png")
    assert stored["analysisData"]["mainTopic"] == "notes.png"
    assert stored["analysisData"]["tnpscCategories"] == []
    assert stored["quizData"] is None


def test_save_quiz_builds_quiz_data():
    db = _FakeDB()
    result = {"score": 3, "totalQuestions": 4, "percentage": 75, "answers": [{"questionIndex": 0}]}

    record_id = history_service.save_study_history(
        "u1",
        "quiz",
        result,
        {"difficulty": "hard", "language": "tamil", "score": 3, "totalQuestions": 4, "percentage": 75, "quizAnswers": result["answers"]},
        db=db,
    )

    quiz_data = db.collection("studyHistory").docs[record_id]["quizData"]
    assert quiz_data["percentage"] == 75
    assert quiz_data["answers"] == [{"questionIndex": 0}]
    assert quiz_data["difficulty"] == "hard"


def test_get_study_history_filters_by_user_newest_first():
    db = _FakeDB()
    docs = db.collection("studyHistory").docs
    docs["a"] = {"userId": "u1", "type": "analysis", "timestamp": datetime(2026, 1, 1, tzinfo=timezone.utc)}
    docs["b"] = {"userId": "u1", "type": "quiz", "percentage": 80, "timestamp": datetime(2026, 2, 1, tzinfo=timezone.utc)}
    docs["c"] = {"userId": "u2", "type": "quiz", "percentage": 10, "timestamp": datetime(2026, 3, 1, tzinfo=timezone.utc)}

    records = history_service.get_study_history("u1", db=db)

    assert [r["id"] for r in records] == ["b", "a"]
    assert records[0]["timestamp"].startswith("2026-02-01")
    assert history_service.history_stats(records) == {"total": 2, "analysisCount": 1, "quizCount": 1, "averageScore": 80}


def test_history_stats_without_quizzes_averages_zero():
    assert history_service.history_stats([{"type": "analysis"}])["averageScore"] == 0


def test_delete_study_history_tolerates_storage_failures():
    db, bucket = _FakeDB(), _FakeBucket(fail_deletes={"study-files/u1/1_b.png"})
    db.collection("studyHistory").docs["r1"] = {"userId": "u1"}

    removed = history_service.delete_study_history("r1", ["study-files/u1/1_a.png", "study-files/u1/1_b.png"], db=db, bucket=bucket)

    assert removed == 1
    assert "r1" not in db.collection("studyHistory").docs
    assert bucket.deleted == ["study-files/u1/1_a.png"]


def test_report_payload_for_record_picks_structured_data():
    quiz_record = {"type": "quiz", "timestamp": "2026-03-01T09:30:00+00:00", "quizData": {"score": 1, "totalQuestions": 2, "percentage": 50, "answers": []}}
    analysis_record = {"type": "analysis", "timestamp": "2026-03-02T09:30:00+00:00", "analysisData": {"summary": "s"}}
    raw_record = {"type": "analysis", "timestamp": None, "data": [{"summary": "raw"}]}

    assert history_service.report_payload_for_record(quiz_record)[0] == "Quiz Results - 01/03/2026"
    assert history_service.report_payload_for_record(quiz_record)[2] == "quiz-results"
    title, content, report_type = history_service.report_payload_for_record(analysis_record)
    assert (title, content, report_type) == ("Study Analysis - 02/03/2026", [{"summary": "s"}], "analysis")
    assert history_service.report_payload_for_record(raw_record)[1] == [{"summary": "raw"}]


def test_report_payload_for_unstructured_record_uses_type_titles():
    quiz_record = {"type": "quiz", "timestamp": "2026-03-01T09:30:00+00:00", "data": {"score": 3, "totalQuestions": 4, "answers": []}}
    analysis_record = {"type": "analysis", "timestamp": "2026-03-02T09:30:00+00:00", "data": [{"summary": "raw"}]}

    assert history_service.report_payload_for_record(quiz_record) == (
        "Quiz Results - 01/03/2026",
        {"score": 3, "totalQuestions": 4, "answers": []},
        "quiz-results",
    )
    assert history_service.report_payload_for_record(analysis_record) == (
        "Study Analysis - 02/03/2026",
        [{"summary": "raw"}],
        "analysis",
    )
