from flask import Blueprint

history_bp = Blueprint('history_api', __name__)


@history_bp.route('/api/history', methods=['GET'])
def list_history():
    from study_assistant import runtime

    return runtime.list_history_impl()


@history_bp.route('/api/history', methods=['POST'])
def save_history():
    from study_assistant import runtime

    return runtime.save_history_impl()


@history_bp.route('/api/history/<record_id>', methods=['GET'])
def get_history_record(record_id):
    from study_assistant import runtime

    return runtime.get_history_record_impl(record_id)


@history_bp.route('/api/history/<record_id>', methods=['DELETE'])
def delete_history_record(record_id):
    from study_assistant import runtime

    return runtime.delete_history_record_impl(record_id)
