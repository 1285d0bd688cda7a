from flask import Blueprint

reports_bp = Blueprint('reports_api', __name__)


@reports_bp.route('/api/sessions/<session_id>/report', methods=['GET'])
def download_session_report(session_id):
    from study_assistant import runtime

    return runtime.download_session_report_impl(session_id)


@reports_bp.route('/api/sessions/<session_id>/pdf/pages/<int:page_number>/report', methods=['GET'])
def download_page_report(session_id, page_number):
    from study_assistant import runtime

    return runtime.download_page_report_impl(session_id, page_number)


@reports_bp.route('/api/history/<record_id>/report', methods=['GET'])
def download_history_report(record_id):
    from study_assistant import runtime

    return runtime.download_history_report_impl(record_id)
