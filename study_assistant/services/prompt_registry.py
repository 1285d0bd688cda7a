"""Prompt templates for the study-assistant model calls."""

from __future__ import annotations

from typing import Dict


PROMPT_REGISTRY_VERSION = "2026-10-01"

OUTPUT_LANGUAGE_MAP: Dict[str, str] = {
    'english': 'English',
    'tamil': 'Tamil',
}
DEFAULT_OUTPUT_LANGUAGE_KEY = 'english'

DIFFICULTY_LEVELS = ('easy', 'medium', 'hard', 'very-hard')
DEFAULT_DIFFICULTY = 'medium'
DIFFICULTY_DESCRIPTIONS: Dict[str, str] = {
    'easy': 'Basic concepts',
    'medium': 'Standard level',
    'hard': 'Advanced level',
    'very-hard': 'Expert level',
}


_ANALYSIS_JSON_SHAPE = """{{
  "keyPoints": ["..."],
  "summary": "...",
  "tnpscRelevance": "...",
  "studyPoints": [
    {{
      "title": "...",
      "description": "...",
      "importance": "high|medium|low",
      "tnpscRelevance": "...",
      "tnpscPriority": "high|medium|low",
      "memoryTip": "..."
    }}
  ],
  "tnpscCategories": ["..."]
}}"""

PROMPT_ANALYZE_IMAGE = """You are a TNPSC (Tamil Nadu Public Service Commission) exam coach.
Study the attached study material (a photo, screenshot or scanned document) and extract what a candidate must remember.

Return ONLY valid JSON, without markdown or extra text, in exactly this format:
""" + _ANALYSIS_JSON_SHAPE + """

Rules:
- 5 to 10 crisp key points.
- Use only information visible in the material.
- Write every text value fully in this language: {output_language}."""

PROMPT_ANALYZE_TEXT = """You are a TNPSC (Tamil Nadu Public Service Commission) exam coach.
Analyse the study material below and extract what a candidate must remember.

Return ONLY valid JSON, without markdown or extra text, in exactly this format:
""" + _ANALYSIS_JSON_SHAPE + """

Rules:
- 5 to 12 crisp key points.
- Use only information present in the material.
- Write every text value fully in this language: {output_language}.

Study material:
{content}
"""

PROMPT_ANALYZE_PAGE = """You are a TNPSC (Tamil Nadu Public Service Commission) exam coach.
Analyse page {page_number} of a study document.

Return ONLY valid JSON, without markdown or extra text, in exactly this format:
{{
  "keyPoints": ["..."],
  "summary": "...",
  "tnpscRelevance": "...",
  "studyPoints": [
    {{"title": "...", "description": "...", "importance": "high|medium|low", "tnpscRelevance": "..."}}
  ],
  "tnpscCategories": ["..."]
}}

Rules:
- Use only information present on this page.
- Write every text value fully in this language: {output_language}.

Page content:
{content}
"""

PROMPT_OVERALL_SUMMARY = """Combine these per-page summaries of one study document into a single overview paragraph for a TNPSC candidate.
Return plain text only, written fully in this language: {output_language}.

Page summaries:
{content}
"""

PROMPT_GENERATE_QUESTIONS = """You are a TNPSC (Tamil Nadu Public Service Commission) question setter.
Write {question_count} exam-style questions at {difficulty} difficulty ({difficulty_description}) from the study notes below.
Mix standard multiple choice questions with assertion-reason questions.

Return ONLY valid JSON, without markdown or extra text, in exactly this format:
{{
  "questions": [
    {{
      "question": "...",
      "options": ["...", "...", "...", "..."],
      "answer": "exact text of the correct option",
      "type": "mcq|assertion_reason",
      "difficulty": "{difficulty}",
      "tnpscGroup": "Group 1|Group 2|Group 4",
      "explanation": "..."
    }}
  ],
  "summary": "...",
  "keyPoints": ["..."]
}}

Rules:
- Every question has exactly 4 distinct options and "answer" repeats one of them verbatim.
- Write every text value fully in this language: {output_language}.

Study notes:
{content}
"""


def resolve_output_language(raw_value):
    key = str(raw_value or DEFAULT_OUTPUT_LANGUAGE_KEY).strip().lower()
    return OUTPUT_LANGUAGE_MAP.get(key, OUTPUT_LANGUAGE_MAP[DEFAULT_OUTPUT_LANGUAGE_KEY])


def sanitize_output_language_key(raw_value):
    key = str(raw_value or DEFAULT_OUTPUT_LANGUAGE_KEY).strip().lower()
    return key if key in OUTPUT_LANGUAGE_MAP else DEFAULT_OUTPUT_LANGUAGE_KEY


def sanitize_difficulty(raw_value, default=DEFAULT_DIFFICULTY):
    value = str(raw_value or default).strip().lower().replace('_', '-').replace(' ', '-')
    return value if value in DIFFICULTY_LEVELS else default


def question_count_for_difficulty(difficulty):
    return {'easy': 10, 'medium': 10, 'hard': 15, 'very-hard': 15}.get(difficulty, 10)


def build_image_prompt(output_language_key):
    return PROMPT_ANALYZE_IMAGE.format(output_language=resolve_output_language(output_language_key))


def build_text_prompt(content, output_language_key):
    return PROMPT_ANALYZE_TEXT.format(
        output_language=resolve_output_language(output_language_key),
        content=content,
    )


def build_page_prompt(content, page_number, output_language_key):
    return PROMPT_ANALYZE_PAGE.format(
        page_number=int(page_number),
        output_language=resolve_output_language(output_language_key),
        content=content,
    )


def build_overall_summary_prompt(content, output_language_key):
    return PROMPT_OVERALL_SUMMARY.format(
        output_language=resolve_output_language(output_language_key),
        content=content,
    )


def build_questions_prompt(content, difficulty, output_language_key, question_count=None):
    safe_difficulty = sanitize_difficulty(difficulty)
    return PROMPT_GENERATE_QUESTIONS.format(
        question_count=int(question_count or question_count_for_difficulty(safe_difficulty)),
        difficulty=safe_difficulty,
        difficulty_description=DIFFICULTY_DESCRIPTIONS[safe_difficulty],
        output_language=resolve_output_language(output_language_key),
        content=content,
    )
