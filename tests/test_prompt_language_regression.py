from study_assistant.services import prompt_registry


def test_core_prompts_are_language_controlled():
    prompts = [
        prompt_registry.PROMPT_ANALYZE_IMAGE,
        prompt_registry.PROMPT_ANALYZE_TEXT,
        prompt_registry.PROMPT_ANALYZE_PAGE,
        prompt_registry.PROMPT_OVERALL_SUMMARY,
        prompt_registry.PROMPT_GENERATE_QUESTIONS,
    ]

    for prompt in prompts:
        assert "{output_language}" in prompt


def test_output_language_mapping_stays_stable():
    assert prompt_registry.resolve_output_language("english") == "English"
    assert prompt_registry.resolve_output_language("TAMIL") == "Tamil"
    assert prompt_registry.resolve_output_language("klingon") == "English"
    assert prompt_registry.sanitize_output_language_key("klingon") == "english"


def test_built_prompts_render_without_leftover_placeholders():
    text_prompt = prompt_registry.build_text_prompt("Chola dynasty notes", "tamil")
    page_prompt = prompt_registry.build_page_prompt("Page body", 3, "english")
    question_prompt = prompt_registry.build_questions_prompt("notes", "very-hard", "english")

    assert "Tamil" in text_prompt and "Chola dynasty notes" in text_prompt
    assert "page 3" in page_prompt
    assert "15 exam-style questions" in question_prompt
    assert "Expert level" in question_prompt
    for prompt in (text_prompt, page_prompt, question_prompt):
        assert "{output_language}" not in prompt
        assert '"keyPoints"' in prompt


def test_sanitize_difficulty_normalises_and_defaults():
    assert prompt_registry.sanitize_difficulty("Very Hard") == "very-hard"
    assert prompt_registry.sanitize_difficulty("very_hard") == "very-hard"
    assert prompt_registry.sanitize_difficulty("impossible") == "medium"
    assert prompt_registry.sanitize_difficulty(None, default="easy") == "easy"
