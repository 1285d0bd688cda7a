from flask import Blueprint

system_bp = Blueprint('system', __name__)


@system_bp.route('/healthz', methods=['GET'])
def healthz():
    from study_assistant import runtime

    return runtime.healthz_impl()


@system_bp.route('/api/config', methods=['GET'])
def get_config():
    from study_assistant import runtime

    return runtime.get_config_impl()
