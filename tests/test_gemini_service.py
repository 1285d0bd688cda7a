import json

import pytest

from study_assistant.services import gemini_service


class _FakeResponse:
    def __init__(self, text):
        self.text = text


class _FakeModels:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        return _FakeResponse(self.replies.pop(0))


class _FakeGeminiClient:
    def __init__(self, *replies):
        self.models = _FakeModels(replies)


ANALYSIS_JSON = {
    "keyPoints": ["Rajaraja I built the Brihadisvara temple", "Rajaraja I built the Brihadisvara temple", ""],
    "summary": "Chola empire overview",
    "tnpscRelevance": "Group 2 history",
    "studyPoints": [
        {"title": "Chola navy", "description": "Naval expeditions", "importance": "HIGH", "tnpscPriority": "high", "memoryTip": "Navy = Srivijaya"},
        {"title": "", "description": ""},
        "not a dict",
    ],
    "tnpscCategories": ["History", "Culture"],
}


def test_extract_json_payload_handles_fences_and_trailing_text():
    fenced = "```json\n{\"a\": 1}\n```"
    trailing = "Here you go: {\"a\": 2} thanks!"

    assert gemini_service.extract_json_payload(fenced) == {"a": 1}
    assert gemini_service.extract_json_payload(trailing) == {"a": 2}
    assert gemini_service.extract_json_payload("no json here") is None
    assert gemini_service.extract_json_payload("") is None


def test_sanitize_analysis_dedupes_and_normalises():
    analysis = gemini_service.sanitize_analysis(ANALYSIS_JSON)

    assert analysis["keyPoints"] == ["Rajaraja I built the Brihadisvara temple"]
    assert len(analysis["studyPoints"]) == 1
    assert analysis["studyPoints"][0]["importance"] == "high"
    assert analysis["studyPoints"][0]["memoryTip"] == "Navy = Srivijaya"
    assert analysis["tnpscCategories"] == ["History", "Culture"]


def test_sanitize_analysis_rejects_empty_payload():
    with pytest.raises(gemini_service.AIResponseError):
        gemini_service.sanitize_analysis({"keyPoints": [], "studyPoints": []})
    with pytest.raises(gemini_service.AIResponseError):
        gemini_service.sanitize_analysis(["not", "an", "object"])


def test_sanitize_questions_validates_options_and_answers():
    questions = gemini_service.sanitize_questions([
        {"question": "Capital of the Cholas?", "options": ["Thanjavur", "Madurai", "Kanchi", "Uraiyur"], "answer": "A", "tnpscGroup": "Group 2"},
        {"question": "Capital of the Cholas?", "options": ["Thanjavur", "Madurai"], "answer": "Thanjavur"},
        {"question": "Duplicate options", "options": ["x", "X"], "answer": "x"},
        {"question": "Answer not in options", "options": ["a", "b"], "answer": "c"},
        {"question": "Assertion (A) and Reason (R)", "options": ["Both true", "A false"], "answer": "both true", "type": "assertion-reason", "difficulty": "hard"},
    ], difficulty="medium")

    assert [q["question"] for q in questions] == ["Capital of the Cholas?", "Assertion (A) and Reason (R)"]
    assert questions[0]["answer"] == "Thanjavur"
    assert questions[0]["difficulty"] == "medium"
    assert questions[0]["tnpscGroup"] == "Group 2"
    assert questions[1]["answer"] == "Both true"
    assert questions[1]["type"] == "assertion_reason"
    assert questions[1]["difficulty"] == "hard"
    assert questions[1]["tnpscGroup"] == "TNPSC"


def test_generate_content_requires_client():
    with pytest.raises(RuntimeError):
        gemini_service.generate_content(None, "gemini-2.5-flash", [])


def test_analyze_image_sends_bytes_and_json_config():
    fake = _FakeGeminiClient(json.dumps(ANALYSIS_JSON))

    analysis = gemini_service.analyze_image(b"\x89PNG", "image/png", "tamil", client=fake, model="gemini-test")

    call = fake.models.calls[0]
    assert call["model"] == "gemini-test"
    assert call["config"].response_mime_type == "application/json"
    assert len(call["contents"][0].parts) == 2
    assert "Tamil" in call["contents"][0].parts[1].text
    assert analysis["language"] == "tamil"


def test_analyze_multiple_images_keeps_input_order():
    first = dict(ANALYSIS_JSON, summary="first")
    second = dict(ANALYSIS_JSON, summary="second")
    fake = _FakeGeminiClient(json.dumps(first), json.dumps(second))

    results = gemini_service.analyze_multiple_images(
        [{"data": b"1", "mime_type": "image/png", "name": "a.png"}, {"data": b"2", "mime_type": "image/jpeg", "name": "b.jpg"}],
        "english",
        client=fake,
        model="m",
    )

    assert [r["summary"] for r in results] == ["first", "second"]
    assert [r["fileName"] for r in results] == ["a.png", "b.jpg"]


def test_analyze_individual_page_rejects_empty_page():
    with pytest.raises(ValueError, match="No content found on page 4"):
        gemini_service.analyze_individual_page("   ", 4, "english", client=_FakeGeminiClient(), model="m")


def test_comprehensive_analysis_aggregates_pages_in_order():
    page_one = {"keyPoints": ["p1-a", "p1-b"], "summary": "one", "tnpscCategories": ["History"]}
    page_three = {"keyPoints": ["p3-a"], "summary": "three", "tnpscCategories": ["History", "Polity"]}
    fake = _FakeGeminiClient(json.dumps(page_one), json.dumps(page_three), "Overall overview")
    full_text = "--- Page 1 ---\nalpha\n--- Page 2 ---\n\n--- Page 3 ---\ngamma"

    result = gemini_service.analyze_pdf_content_comprehensive(full_text, "english", client=fake, model="m")

    assert [p["pageNumber"] for p in result["pageAnalyses"]] == [1, 3]
    assert result["totalKeyPoints"] == ["p1-a", "p1-b", "p3-a"]
    assert result["tnpscCategories"] == ["History", "Polity"]
    assert result["overallSummary"] == "Overall overview"


def test_merge_page_analysis_ignores_duplicates_and_sorts():
    comprehensive = {"pageAnalyses": [{"pageNumber": 3, "keyPoints": ["c"]}], "totalKeyPoints": ["c"], "tnpscCategories": []}

    assert gemini_service.merge_page_analysis(comprehensive, {"pageNumber": 1, "keyPoints": ["a"], "tnpscCategories": ["Geo"]}) is True
    assert gemini_service.merge_page_analysis(comprehensive, {"pageNumber": 3, "keyPoints": ["dup"]}) is False
    assert [p["pageNumber"] for p in comprehensive["pageAnalyses"]] == [1, 3]
    assert comprehensive["totalKeyPoints"] == ["c", "a"]
    assert comprehensive["tnpscCategories"] == ["Geo"]


def test_generate_questions_returns_question_result():
    reply = {
        "questions": [{"question": "Q1?", "options": ["a", "b", "c", "d"], "answer": "b"}],
        "summary": "quiz summary",
        "keyPoints": ["k"],
    }
    fake = _FakeGeminiClient(json.dumps(reply))

    result = gemini_service.generate_questions(
        [{"mainTopic": "Cholas", "summary": "s", "keyPoints": ["kp"], "studyPoints": [{"title": "t", "description": "d"}]}],
        "hard",
        "english",
        client=fake,
        model="m",
    )

    prompt = fake.models.calls[0]["contents"][0].parts[0].text
    assert "Topic: Cholas" in prompt
    assert result["difficulty"] == "hard"
    assert result["totalQuestions"] == 1
    assert result["questions"][0]["difficulty"] == "hard"


def test_generate_questions_raises_when_model_returns_garbage():
    fake = _FakeGeminiClient("I cannot help with that")

    with pytest.raises(gemini_service.AIResponseError):
        gemini_service.generate_questions([{"summary": "s"}], "easy", "english", client=fake, model="m")
