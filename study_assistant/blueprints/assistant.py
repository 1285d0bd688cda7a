from flask import Blueprint

assistant_bp = Blueprint('assistant_api', __name__)


@assistant_bp.route('/api/sessions', methods=['POST'])
def create_session():
    from study_assistant import runtime

    return runtime.create_session_impl()


@assistant_bp.route('/api/sessions/<session_id>', methods=['GET'])
def get_session(session_id):
    from study_assistant import runtime

    return runtime.get_session_impl(session_id)


@assistant_bp.route('/api/sessions/<session_id>', methods=['PATCH'])
def update_session(session_id):
    from study_assistant import runtime

    return runtime.update_session_impl(session_id)


@assistant_bp.route('/api/sessions/<session_id>', methods=['DELETE'])
def delete_session(session_id):
    from study_assistant import runtime

    return runtime.delete_session_impl(session_id)


@assistant_bp.route('/api/sessions/<session_id>/files', methods=['POST'])
def upload_files(session_id):
    from study_assistant import runtime

    return runtime.upload_files_impl(session_id)


@assistant_bp.route('/api/sessions/<session_id>/analyze', methods=['POST'])
def analyze_session(session_id):
    from study_assistant import runtime

    return runtime.analyze_session_impl(session_id)


@assistant_bp.route('/api/sessions/<session_id>/quick-quiz', methods=['POST'])
def quick_quiz(session_id):
    from study_assistant import runtime

    return runtime.quick_quiz_impl(session_id)


@assistant_bp.route('/api/sessions/<session_id>/pdf/select-range', methods=['POST'])
def select_page_range(session_id):
    from study_assistant import runtime

    return runtime.select_page_range_impl(session_id)


@assistant_bp.route('/api/sessions/<session_id>/pdf/analyze-all', methods=['POST'])
def analyze_all_pages_comprehensive(session_id):
    from study_assistant import runtime

    return runtime.analyze_all_pages_comprehensive_impl(session_id)


@assistant_bp.route('/api/sessions/<session_id>/pdf/pages/<int:page_number>/analyze', methods=['POST'])
def analyze_navigator_page(session_id, page_number):
    from study_assistant import runtime

    return runtime.analyze_navigator_page_impl(session_id, page_number)


@assistant_bp.route('/api/sessions/<session_id>/pdf/analyze-all-pages', methods=['POST'])
def analyze_navigator_all_pages(session_id):
    from study_assistant import runtime

    return runtime.analyze_navigator_all_pages_impl(session_id)


@assistant_bp.route('/api/sessions/<session_id>/pdf/comprehensive/pages/<int:page_number>', methods=['POST'])
def add_comprehensive_page(session_id, page_number):
    from study_assistant import runtime

    return runtime.add_comprehensive_page_impl(session_id, page_number)


@assistant_bp.route('/api/sessions/<session_id>/questions', methods=['POST'])
def generate_questions(session_id):
    from study_assistant import runtime

    return runtime.generate_questions_impl(session_id)


@assistant_bp.route('/api/sessions/<session_id>/quiz/start', methods=['POST'])
def start_quiz(session_id):
    from study_assistant import runtime

    return runtime.start_quiz_impl(session_id)


@assistant_bp.route('/api/sessions/<session_id>/quiz/answer', methods=['POST'])
def answer_question(session_id):
    from study_assistant import runtime

    return runtime.answer_question_impl(session_id)


@assistant_bp.route('/api/sessions/<session_id>/quiz/previous', methods=['POST'])
def previous_question(session_id):
    from study_assistant import runtime

    return runtime.previous_question_impl(session_id)


@assistant_bp.route('/api/sessions/<session_id>/quiz/submit', methods=['POST'])
def submit_quiz(session_id):
    from study_assistant import runtime

    return runtime.submit_quiz_impl(session_id)


@assistant_bp.route('/api/sessions/<session_id>/back-to-analysis', methods=['POST'])
def back_to_analysis(session_id):
    from study_assistant import runtime

    return runtime.back_to_analysis_impl(session_id)


@assistant_bp.route('/api/sessions/<session_id>/reset', methods=['POST'])
def reset_session(session_id):
    from study_assistant import runtime

    return runtime.reset_session_impl(session_id)
