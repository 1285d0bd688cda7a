"""Gemini calls for study-material analysis and quiz generation."""

import json

from google.genai import types

from study_assistant.services import pdf_text_service, prompt_registry

MAX_SOURCE_TEXT_LEN = 120000
MAX_TEXT_LEN = 2000
MAX_KEY_POINTS = 40
MAX_STUDY_POINTS = 40
MAX_QUESTIONS = 50
IMPORTANCE_LEVELS = {'high', 'medium', 'low'}
QUESTION_TYPES = {'mcq', 'assertion_reason'}


class AIResponseError(RuntimeError):
    """The model answered, but not in the shape we asked for."""


def extract_json_payload(raw_text):
    if not raw_text:
        return None
    text = raw_text.strip()
    if text.startswith('```'):
        lines = text.splitlines()
        if len(lines) >= 3 and lines[0].startswith('```') and lines[-1].strip() == '```':
            text = '\n'.join(lines[1:-1]).strip()
    start = text.find('{')
    if start == -1:
        return None
    decoder = json.JSONDecoder()
    try:
        parsed, _ = decoder.raw_decode(text[start:])
        return parsed
    except json.JSONDecodeError:
        end = text.rfind('}')
        if end == -1 or end <= start:
            return None
        try:
            return json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            return None


def _clean_text(value, max_len=MAX_TEXT_LEN):
    if value is None:
        return ''
    return str(value).strip()[:max_len]


def sanitize_string_list(items, max_items, max_len=MAX_TEXT_LEN):
    if not isinstance(items, list):
        return []
    cleaned = []
    seen = set()
    for item in items:
        if isinstance(item, (dict, list)):
            continue
        text = _clean_text(item, max_len)
        if not text or text.lower() in seen:
            continue
        seen.add(text.lower())
        cleaned.append(text)
        if len(cleaned) >= max_items:
            break
    return cleaned


def sanitize_study_points(items, max_items=MAX_STUDY_POINTS):
    if not isinstance(items, list):
        return []
    cleaned = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = _clean_text(item.get('title'), 300)
        description = _clean_text(item.get('description'))
        if not title and not description:
            continue
        importance = _clean_text(item.get('importance'), 16).lower()
        point = {
            'title': title or description[:80],
            'description': description,
            'importance': importance if importance in IMPORTANCE_LEVELS else 'medium',
        }
        relevance = _clean_text(item.get('tnpscRelevance'))
        if relevance:
            point['tnpscRelevance'] = relevance
        priority = _clean_text(item.get('tnpscPriority'), 16).lower()
        if priority in IMPORTANCE_LEVELS:
            point['tnpscPriority'] = priority
        memory_tip = _clean_text(item.get('memoryTip'))
        if memory_tip:
            point['memoryTip'] = memory_tip
        cleaned.append(point)
        if len(cleaned) >= max_items:
            break
    return cleaned


def sanitize_analysis(payload):
    if not isinstance(payload, dict):
        raise AIResponseError('Analysis response was not a JSON object.')
    analysis = {
        'keyPoints': sanitize_string_list(payload.get('keyPoints', []), MAX_KEY_POINTS),
        'summary': _clean_text(payload.get('summary'), 6000),
        'tnpscRelevance': _clean_text(payload.get('tnpscRelevance'), 4000),
        'studyPoints': sanitize_study_points(payload.get('studyPoints', [])),
        'tnpscCategories': sanitize_string_list(payload.get('tnpscCategories', []), 20, 200),
    }
    if not analysis['keyPoints'] and not analysis['studyPoints'] and not analysis['summary']:
        raise AIResponseError('Analysis was empty after validation.')
    return analysis


def _resolve_option_letter(answer, options):
    if len(answer) == 1 and answer.isalpha():
        index = ord(answer.upper()) - ord('A')
        if 0 <= index < len(options):
            return options[index]
    return answer


def sanitize_questions(items, difficulty, max_items=MAX_QUESTIONS):
    if not isinstance(items, list):
        return []
    cleaned = []
    seen = set()
    for item in items:
        if not isinstance(item, dict):
            continue
        question = _clean_text(item.get('question'))
        answer = _clean_text(item.get('answer'))
        if not question or not answer:
            continue
        raw_options = item.get('options') or []
        if not isinstance(raw_options, list):
            continue
        options = [_clean_text(option) for option in raw_options if _clean_text(option)]
        if raw_options:
            if len(options) < 2 or len({o.lower() for o in options}) != len(options):
                continue
            answer = _resolve_option_letter(answer, options)
            matching = [o for o in options if o.lower() == answer.lower()]
            if not matching:
                continue
            answer = matching[0]
        dedupe_key = question.lower()
        if dedupe_key in seen:
            continue
        seen.add(dedupe_key)
        question_type = _clean_text(item.get('type'), 32).lower().replace('-', '_')
        entry = {
            'question': question,
            'answer': answer,
            'type': question_type if question_type in QUESTION_TYPES else 'mcq',
            'difficulty': prompt_registry.sanitize_difficulty(item.get('difficulty'), default=difficulty),
            'tnpscGroup': _clean_text(item.get('tnpscGroup'), 64) or 'TNPSC',
        }
        if options:
            entry['options'] = options
        explanation = _clean_text(item.get('explanation'))
        if explanation:
            entry['explanation'] = explanation
        cleaned.append(entry)
        if len(cleaned) >= max_items:
            break
    return cleaned


def generate_content(client, model, parts, *, json_output=True, max_output_tokens=16384):
    if client is None:
        raise RuntimeError('Gemini client is not configured.')
    config_kwargs = {'max_output_tokens': max_output_tokens}
    if json_output:
        config_kwargs['response_mime_type'] = 'application/json'
    return client.models.generate_content(
        model=model,
        contents=[types.Content(role='user', parts=parts)],
        config=types.GenerateContentConfig(**config_kwargs),
    )


def generate_json(client, model, parts):
    response = generate_content(client, model, parts)
    parsed = extract_json_payload(getattr(response, 'text', '') or '')
    if not isinstance(parsed, dict):
        raise AIResponseError('Model response JSON parsing failed.')
    return parsed


def analyze_image(image_bytes, mime_type, output_language, *, client, model):
    parts = [
        types.Part.from_bytes(data=bytes(image_bytes), mime_type=mime_type),
        types.Part.from_text(text=prompt_registry.build_image_prompt(output_language)),
    ]
    analysis = sanitize_analysis(generate_json(client, model, parts))
    analysis['language'] = prompt_registry.sanitize_output_language_key(output_language)
    return analysis


def analyze_multiple_images(images, output_language, *, client, model):
    """Analyse each ``{data, mime_type, name}`` image in order."""
    results = []
    for image in images:
        analysis = analyze_image(image['data'], image['mime_type'], output_language, client=client, model=model)
        if image.get('name'):
            analysis['fileName'] = image['name']
        results.append(analysis)
    return results


def analyze_pdf_content(text, output_language, *, client, model):
    content = str(text or '')[:MAX_SOURCE_TEXT_LEN]
    if not content.strip():
        raise ValueError('No text content to analyse.')
    prompt = prompt_registry.build_text_prompt(content, output_language)
    analysis = sanitize_analysis(generate_json(client, model, [types.Part.from_text(text=prompt)]))
    analysis['language'] = prompt_registry.sanitize_output_language_key(output_language)
    return analysis


def analyze_individual_page(text, page_number, output_language, *, client, model):
    content = str(text or '')[:MAX_SOURCE_TEXT_LEN]
    if not content.strip():
        raise ValueError(f'No content found on page {page_number}')
    prompt = prompt_registry.build_page_prompt(content, page_number, output_language)
    analysis = sanitize_analysis(generate_json(client, model, [types.Part.from_text(text=prompt)]))
    return {
        'pageNumber': int(page_number),
        'keyPoints': analysis['keyPoints'],
        'studyPoints': [
            {
                'title': point['title'],
                'description': point['description'],
                'importance': point['importance'],
                'tnpscRelevance': point.get('tnpscRelevance', ''),
            }
            for point in analysis['studyPoints']
        ],
        'summary': analysis['summary'],
        'tnpscRelevance': analysis['tnpscRelevance'],
        'tnpscCategories': analysis['tnpscCategories'],
    }


def summarize_pages(page_analyses, output_language, *, client, model):
    summaries = [p['summary'] for p in page_analyses if p.get('summary')]
    if len(summaries) <= 1:
        return summaries[0] if summaries else ''
    joined = '\n'.join(f"Page {p['pageNumber']}: {p['summary']}" for p in page_analyses if p.get('summary'))
    prompt = prompt_registry.build_overall_summary_prompt(joined[:MAX_SOURCE_TEXT_LEN], output_language)
    response = generate_content(client, model, [types.Part.from_text(text=prompt)], json_output=False, max_output_tokens=4096)
    return _clean_text(getattr(response, 'text', ''), 6000) or ' '.join(summaries)


def merge_page_analysis(comprehensive, page_analysis):
    """Add one page to a comprehensive result; returns False for duplicates."""
    pages = comprehensive.setdefault('pageAnalyses', [])
    if any(p.get('pageNumber') == page_analysis['pageNumber'] for p in pages):
        return False
    pages.append(page_analysis)
    pages.sort(key=lambda p: p.get('pageNumber', 0))
    comprehensive.setdefault('totalKeyPoints', []).extend(page_analysis.get('keyPoints', []))
    categories = comprehensive.setdefault('tnpscCategories', [])
    for category in page_analysis.get('tnpscCategories', []):
        if category not in categories:
            categories.append(category)
    return True


def analyze_pdf_content_comprehensive(full_text, output_language, *, client, model):
    pages = pdf_text_service.split_pages(full_text)
    if not pages and str(full_text or '').strip():
        pages = {1: str(full_text).strip()}
    comprehensive = {
        'pageAnalyses': [],
        'overallSummary': '',
        'totalKeyPoints': [],
        'tnpscCategories': [],
    }
    for page_number in sorted(pages):
        if not pages[page_number].strip():
            continue
        page_analysis = analyze_individual_page(pages[page_number], page_number, output_language, client=client, model=model)
        merge_page_analysis(comprehensive, page_analysis)
    if not comprehensive['pageAnalyses']:
        raise ValueError('No readable text was found in the PDF.')
    comprehensive['overallSummary'] = summarize_pages(comprehensive['pageAnalyses'], output_language, client=client, model=model)
    return comprehensive


def generate_questions(analyses, difficulty, output_language, *, client, model):
    safe_difficulty = prompt_registry.sanitize_difficulty(difficulty)
    notes = []
    for analysis in analyses or []:
        topic = analysis.get('mainTopic') or analysis.get('fileName') or ''
        if topic:
            notes.append(f'Topic: {topic}')
        if analysis.get('summary'):
            notes.append(f"Summary: {analysis['summary']}")
        for point in analysis.get('keyPoints', []):
            notes.append(f'- {point}')
        for point in analysis.get('studyPoints', []):
            notes.append(f"- {point.get('title', '')}: {point.get('description', '')}")
    content = '\n'.join(notes)[:MAX_SOURCE_TEXT_LEN]
    if not content.strip():
        raise ValueError('No analysed content to generate questions from.')
    prompt = prompt_registry.build_questions_prompt(content, safe_difficulty, output_language)
    parsed = generate_json(client, model, [types.Part.from_text(text=prompt)])
    questions = sanitize_questions(parsed.get('questions', []), safe_difficulty)
    if not questions:
        raise AIResponseError('Question set was empty after validation.')
    return {
        'questions': questions,
        'summary': _clean_text(parsed.get('summary'), 6000),
        'keyPoints': sanitize_string_list(parsed.get('keyPoints', []), MAX_KEY_POINTS),
        'difficulty': safe_difficulty,
        'totalQuestions': len(questions),
    }
