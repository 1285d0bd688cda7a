"""Paginated PDF reports for analyses, question sets and quiz results.

Layout is tracked in top-down millimetres, the way the study reports have
always been laid out, and converted to PDF points only when drawing.
"""

import io
import re
from datetime import datetime

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

REPORT_TYPES = ('keypoints', 'analysis', 'questions', 'quiz-results')
MARGIN = 20
LINE_HEIGHT = 7
FONT_NAMES = {
    'normal': 'Helvetica',
    'bold': 'Helvetica-Bold',
    'italic': 'Helvetica-Oblique',
    'bolditalic': 'Helvetica-BoldOblique',
}


def pdf_safe_text(value):
    """Helvetica only encodes Latin-1; anything else becomes '?'."""
    return str(value if value is not None else '').encode('latin-1', 'replace').decode('latin-1')


def report_filename(title):
    return re.sub(r'[^a-z0-9]', '_', str(title or ''), flags=re.IGNORECASE).lower() + '.pdf'


def report_performance_message(percentage):
    if percentage >= 90:
        return 'Outstanding performance! Excellent work!'
    if percentage >= 80:
        return "Great job! You're well prepared!"
    if percentage >= 70:
        return 'Good work! Continue studying!'
    if percentage >= 60:
        return 'Fair performance. More practice needed.'
    return 'Good effort! Keep practicing.'


def _default_canvas_factory(buffer, pagesize):
    return canvas.Canvas(buffer, pagesize=pagesize)


class ReportLayout:
    def __init__(self, pdf_canvas, pagesize=A4):
        self.canvas = pdf_canvas
        self.page_width = pagesize[0] / mm
        self.page_height = pagesize[1] / mm
        self.y = MARGIN
        self.page_count = 1

    def check_new_page(self, required=30):
        if self.y > self.page_height - required:
            self.canvas.showPage()
            self.page_count += 1
            self.y = MARGIN

    def _draw_lines(self, lines, x, font_name, size):
        self.canvas.setFont(font_name, size)
        for index, line in enumerate(lines):
            top_down = self.y + index * LINE_HEIGHT
            self.canvas.drawString(x * mm, (self.page_height - top_down) * mm, line)

    def add_wrapped_text(self, text, x, size=12, style='normal'):
        font_name = FONT_NAMES.get(style, FONT_NAMES['normal'])
        width = (self.page_width - 2 * MARGIN) * mm
        lines = simpleSplit(pdf_safe_text(text), font_name, size, width) or ['']
        self.check_new_page(len(lines) * LINE_HEIGHT + 10)
        self._draw_lines(lines, x, font_name, size)
        self.y += len(lines) * LINE_HEIGHT + 5
        return len(lines)

    def add_title(self, title):
        self._draw_lines([pdf_safe_text(title)], MARGIN, FONT_NAMES['bold'], 20)
        self.y += LINE_HEIGHT * 2


def _render_analyses(layout, analyses):
    for index, analysis in enumerate(analyses):
        analysis = analysis if isinstance(analysis, dict) else {}
        layout.check_new_page(50)
        label = analysis.get('fileName') or analysis.get('mainTopic') or f'Analysis {index + 1}'
        layout.add_wrapped_text(f'File: {label}', MARGIN, 16, 'bold')

        if analysis.get('summary'):
            layout.add_wrapped_text('Summary:', MARGIN, 14, 'bold')
            layout.add_wrapped_text(analysis['summary'], MARGIN, 12)
            layout.y += 5

        key_points = analysis.get('keyPoints') or []
        if key_points:
            layout.add_wrapped_text('Key Study Points:', MARGIN, 14, 'bold')
            for point_index, point in enumerate(key_points, 1):
                layout.check_new_page(20)
                layout.add_wrapped_text(f'{point_index}. {point}', MARGIN + 10, 11)
            layout.y += 5

        study_points = analysis.get('studyPoints') or []
        if study_points:
            layout.add_wrapped_text('Detailed Study Points:', MARGIN, 14, 'bold')
            for point_index, point in enumerate(study_points, 1):
                layout.check_new_page(40)
                priority = point.get('tnpscPriority')
                priority_text = f' [{str(priority).upper()} Priority]' if priority else ''
                layout.add_wrapped_text(f"{point_index}. {point.get('title', '')}{priority_text}", MARGIN + 5, 12, 'bold')
                layout.add_wrapped_text(point.get('description', ''), MARGIN + 10, 11)
                if point.get('tnpscRelevance'):
                    layout.add_wrapped_text(f"TNPSC Context: {point['tnpscRelevance']}", MARGIN + 10, 10, 'italic')
                if point.get('memoryTip'):
                    layout.add_wrapped_text(f"Memory Tip: {point['memoryTip']}", MARGIN + 10, 10, 'italic')
                layout.y += 5

        categories = analysis.get('tnpscCategories') or []
        if categories:
            layout.add_wrapped_text('TNPSC Categories:', MARGIN, 14, 'bold')
            layout.add_wrapped_text(', '.join(str(c) for c in categories), MARGIN, 11)
            layout.y += 10

        if analysis.get('tnpscRelevance'):
            layout.add_wrapped_text('TNPSC Exam Relevance:', MARGIN, 14, 'bold')
            layout.add_wrapped_text(analysis['tnpscRelevance'], MARGIN, 11)
            layout.y += 15


def _render_questions(layout, questions):
    for index, question in enumerate(questions, 1):
        question = question if isinstance(question, dict) else {}
        layout.check_new_page(80)
        difficulty = str(question.get('difficulty') or 'medium').upper()
        group = question.get('tnpscGroup') or 'TNPSC'
        layout.add_wrapped_text(f'Question {index} - {difficulty} Level ({group})', MARGIN, 14, 'bold')
        layout.add_wrapped_text(question.get('question', ''), MARGIN, 12)

        options = question.get('options') or []
        if options:
            layout.y += 5
            for opt_index, option in enumerate(options):
                layout.add_wrapped_text(f'{chr(65 + opt_index)}. {option}', MARGIN + 10, 11)

        if question.get('answer'):
            layout.y += 5
            layout.add_wrapped_text(f"Correct Answer: {question['answer']}", MARGIN, 12, 'bold')

        if question.get('explanation'):
            layout.add_wrapped_text(f"Explanation: {question['explanation']}", MARGIN, 11)

        layout.y += 10


def _render_quiz_results(layout, result, generated_on):
    percentage = result.get('percentage') or 0
    layout.add_wrapped_text('Quiz Results Summary', MARGIN, 18, 'bold')
    layout.add_wrapped_text(f"Score: {result.get('score', 0)}/{result.get('totalQuestions', 0)} ({percentage}%)", MARGIN, 14, 'bold')
    layout.add_wrapped_text(f"Difficulty Level: {result.get('difficulty') or 'Medium'}", MARGIN, 12)
    layout.add_wrapped_text(f"Date: {generated_on.strftime('%d/%m/%Y')}", MARGIN, 12)
    layout.y += 10

    layout.add_wrapped_text(report_performance_message(percentage), MARGIN, 12, 'italic')
    layout.y += 10

    layout.add_wrapped_text('Detailed Answer Review:', MARGIN, 16, 'bold')
    for index, answer in enumerate(result.get('answers') or [], 1):
        layout.check_new_page(60)
        question = answer.get('question') or {}
        status = 'CORRECT' if answer.get('isCorrect') else 'INCORRECT'
        layout.add_wrapped_text(f'Q{index}: {status}', MARGIN, 12, 'bold')
        layout.add_wrapped_text(question.get('question', ''), MARGIN, 11)

        user_answer = answer.get('userAnswer', '')
        correct_answer = answer.get('correctAnswer', '')
        for opt_index, option in enumerate(question.get('options') or []):
            letter = chr(65 + opt_index)
            highlighted = user_answer in (letter, option) or correct_answer in (letter, option)
            layout.add_wrapped_text(f'{letter}. {option}', MARGIN + 10, 10, 'bold' if highlighted else 'normal')

        layout.add_wrapped_text(f'Your Answer: {user_answer}', MARGIN + 5, 11)
        if not answer.get('isCorrect'):
            layout.add_wrapped_text(f'Correct Answer: {correct_answer}', MARGIN + 5, 11, 'bold')
        if question.get('explanation'):
            layout.add_wrapped_text(f"Explanation: {question['explanation']}", MARGIN + 5, 10, 'italic')
        layout.y += 10


def build_report_pdf(title, content, report_type, *, canvas_factory=None, generated_on=None):
    if report_type not in REPORT_TYPES:
        raise ValueError(f'Unknown report type: {report_type}')
    buffer = io.BytesIO()
    pdf_canvas = (canvas_factory or _default_canvas_factory)(buffer, A4)
    pdf_canvas.setTitle(pdf_safe_text(title))
    layout = ReportLayout(pdf_canvas, A4)
    layout.add_title(title)

    if report_type in ('keypoints', 'analysis'):
        analyses = content if isinstance(content, list) else [content or {}]
        _render_analyses(layout, analyses)
    elif report_type == 'questions':
        if isinstance(content, dict):
            content = content.get('questions') or []
        _render_questions(layout, content or [])
    else:
        _render_quiz_results(layout, content if isinstance(content, dict) else {}, generated_on or datetime.now())

    pdf_canvas.save()
    buffer.seek(0)
    return buffer
