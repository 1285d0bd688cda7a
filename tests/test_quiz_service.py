import pytest

from study_assistant.services import quiz_service

QUESTIONS = [
    {"question": "Q1", "options": ["Thanjavur", "Madurai"], "answer": "Thanjavur"},
    {"question": "Q2", "options": ["1947", "1950"], "answer": "B"},
    {"question": "Q3", "answer": "Kaveri"},
]


def test_record_answer_requires_selection_and_replaces_previous():
    with pytest.raises(ValueError, match="Please select an answer before proceeding"):
        quiz_service.record_answer([], 0, "   ")

    answers = quiz_service.record_answer([], 1, "1950")
    answers = quiz_service.record_answer(answers, 0, "Madurai")
    answers = quiz_service.record_answer(answers, 0, "Thanjavur")

    assert answers == [
        {"questionIndex": 0, "selectedOption": "Thanjavur"},
        {"questionIndex": 1, "selectedOption": "1950"},
    ]
    assert quiz_service.saved_answer(answers, 1) == "1950"
    assert quiz_service.saved_answer(answers, 2) == ""


def test_calculate_results_matches_text_and_letters():
    answers = [
        {"questionIndex": 2, "selectedOption": " kaveri "},
        {"questionIndex": 0, "selectedOption": "A"},
        {"questionIndex": 1, "selectedOption": "1947"},
    ]

    result = quiz_service.calculate_results(QUESTIONS, answers, "hard")

    assert result["score"] == 2
    assert result["totalQuestions"] == 3
    assert result["percentage"] == 67
    assert result["difficulty"] == "hard"
    assert [r["questionIndex"] for r in result["answers"]] == [0, 1, 2]
    assert [r["isCorrect"] for r in result["answers"]] == [True, False, True]
    assert result["answers"][1]["correctAnswer"] == "B"


def test_calculate_results_with_no_questions_scores_zero():
    result = quiz_service.calculate_results([], [], "easy")

    assert result["percentage"] == 0
    assert result["answers"] == []


@pytest.mark.parametrize(
    "percentage, expected",
    [
        (95, "Outstanding"),
        (85, "Excellent"),
        (70, "Great job"),
        (60, "Good effort"),
        (45, "Fair performance"),
        (10, "Keep studying"),
    ],
)
def test_performance_message_thresholds(percentage, expected):
    assert quiz_service.performance_message(percentage).startswith(expected)


def test_time_taken_splits_minutes_and_seconds():
    assert quiz_service.time_taken(100.0, 225.9) == {"minutes": 2, "seconds": 5}
    assert quiz_service.time_taken(10, 5) == {"minutes": 0, "seconds": 0}
