"""Quiz answering and scoring."""


def option_letter(index):
    return chr(65 + int(index))


def _normalize(value):
    return str(value or '').strip().lower()


def is_answer_correct(question, selected_option):
    selected = _normalize(selected_option)
    expected = _normalize(question.get('answer'))
    if not selected or not expected:
        return False
    if selected == expected:
        return True
    options = question.get('options') or []
    for index, option in enumerate(options):
        letter = option_letter(index).lower()
        option_text = _normalize(option)
        if selected == letter and option_text == expected:
            return True
        if expected == letter and option_text == selected:
            return True
    return False


def record_answer(answers, question_index, selected_option):
    """Return a new answer list with this question's answer replaced."""
    selected = str(selected_option or '').strip()
    if not selected:
        raise ValueError('Please select an answer before proceeding')
    index = int(question_index)
    updated = [a for a in answers or [] if a.get('questionIndex') != index]
    updated.append({'questionIndex': index, 'selectedOption': selected})
    updated.sort(key=lambda a: a['questionIndex'])
    return updated


def saved_answer(answers, question_index):
    for answer in answers or []:
        if answer.get('questionIndex') == question_index:
            return answer.get('selectedOption', '')
    return ''


def calculate_results(questions, answers, difficulty=''):
    questions = list(questions or [])
    reviews = []
    for answer in sorted(answers or [], key=lambda a: a.get('questionIndex', 0)):
        index = answer.get('questionIndex')
        if not isinstance(index, int) or index < 0 or index >= len(questions):
            continue
        question = questions[index]
        reviews.append({
            'question': question,
            'userAnswer': answer.get('selectedOption', ''),
            'correctAnswer': question.get('answer') or '',
            'isCorrect': is_answer_correct(question, answer.get('selectedOption', '')),
            'questionIndex': index,
        })
    score = sum(1 for review in reviews if review['isCorrect'])
    percentage = round((score / len(questions)) * 100) if questions else 0
    return {
        'score': score,
        'totalQuestions': len(questions),
        'percentage': percentage,
        'difficulty': difficulty,
        'answers': reviews,
    }


def performance_message(percentage):
    if percentage >= 90:
        return "Outstanding! You're mastering TNPSC concepts!"
    if percentage >= 80:
        return "Excellent work! You're well prepared!"
    if percentage >= 70:
        return 'Great job! Keep up the good work!'
    if percentage >= 60:
        return 'Good effort! Review and improve!'
    if percentage >= 40:
        return 'Fair performance. More practice needed!'
    return "Keep studying! You'll improve with practice!"


def time_taken(start_ts, end_ts):
    elapsed = max(0, int(float(end_ts) - float(start_ts)))
    return {'minutes': elapsed // 60, 'seconds': elapsed % 60}
