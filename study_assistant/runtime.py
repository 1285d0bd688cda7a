import json
import logging
import os
import sys
import threading
import time
import uuid

from dotenv import find_dotenv, load_dotenv
from flask import Flask, g, jsonify, request, send_file
from google import genai
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.utils import secure_filename

import firebase_admin
import sentry_sdk
from firebase_admin import auth, credentials, firestore, storage

from study_assistant.config import AppConfig
from study_assistant.logging_config import log_event, logger
from study_assistant.services import (
    assistant_api_service,
    auth_service,
    file_service,
    gemini_service,
    history_api_service,
    history_service,
    pdf_text_service,
    prompt_registry,
    quiz_service,
    report_api_service,
    report_service,
    session_state_service,
)

load_dotenv(find_dotenv(usecwd=True))
CONFIG = AppConfig()

app = Flask(__name__)
app.secret_key = CONFIG.flask_secret_key or os.urandom(32).hex()

MAX_UPLOAD_FILES = CONFIG.max_upload_files
MAX_UPLOAD_FILE_BYTES = CONFIG.max_upload_file_mb * 1024 * 1024
MAX_CONTENT_LENGTH = MAX_UPLOAD_FILE_BYTES * MAX_UPLOAD_FILES + (1024 * 1024)
PAGE_ANALYSIS_DELAY_SECONDS = CONFIG.page_analysis_delay_seconds
SESSION_TTL_SECONDS = CONFIG.session_ttl_seconds
SESSION_CLEANUP_INTERVAL_SECONDS = 5 * 60
GEMINI_MODEL = CONFIG.gemini_model
SENTRY_ENVIRONMENT = CONFIG.sentry_environment
app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

if CONFIG.gemini_api_key:
    try:
        client = genai.Client(api_key=CONFIG.gemini_api_key)
    except Exception as e:
        client = None
        logger.info(f"Gemini client disabled: {e}")
else:
    client = None
    logger.info("GEMINI_API_KEY not set; AI analysis features are disabled.")

# --- Firebase Setup ---
db = None
bucket = None
firebase_init_error = ''
try:
    if os.path.exists('firebase-credentials.json'):
        cred = credentials.Certificate('firebase-credentials.json')
    else:
        if not CONFIG.firebase_credentials:
            raise ValueError("FIREBASE_CREDENTIALS is not set and firebase-credentials.json was not found.")
        cred = credentials.Certificate(json.loads(CONFIG.firebase_credentials))
    if not firebase_admin._apps:
        options = {'storageBucket': CONFIG.firebase_storage_bucket} if CONFIG.firebase_storage_bucket else None
        firebase_admin.initialize_app(cred, options)
    db = firestore.client()
    if CONFIG.firebase_storage_bucket:
        bucket = storage.bucket()
except Exception as e:
    firebase_init_error = str(e)
    logger.info(f"Firebase initialization skipped: {firebase_init_error}")

# --- In-Memory Storage (study sessions; history lives in Firestore) ---
sessions = {}
SESSIONS_LOCK = threading.RLock()


@app.before_request
def attach_sentry_route_context():
    request_id = str(request.headers.get('X-Request-ID', '') or '').strip()[:120] or uuid.uuid4().hex
    g.request_id = request_id
    if not sentry_sdk:
        return
    sentry_sdk.set_tag('request.id', request_id)
    sentry_sdk.set_tag('route.path', request.path)
    sentry_sdk.set_tag('route.method', request.method)
    sentry_sdk.set_tag('route.endpoint', request.endpoint or '')
    sentry_sdk.set_tag('route.auth_header_present', 'true' if request.headers.get('Authorization') else 'false')
    sentry_sdk.set_tag('route.environment', SENTRY_ENVIRONMENT or 'production')


@app.after_request
def attach_sentry_response_context(response):
    request_id = str(getattr(g, 'request_id', '') or '').strip()
    if request_id:
        response.headers['X-Request-ID'] = request_id
    if sentry_sdk:
        sentry_sdk.set_tag('route.status_code', str(response.status_code))
    return response


@app.errorhandler(RequestEntityTooLarge)
def handle_request_entity_too_large(_error):
    return jsonify({'error': f'Upload too large. Maximum is {MAX_UPLOAD_FILES} files of {CONFIG.max_upload_file_mb}MB each.'}), 413


def cleanup_expired_sessions():
    """Evict study sessions idle for longer than SESSION_TTL_SECONDS."""
    removed = session_state_service.purge_expired_sessions(
        sessions_store=sessions,
        lock=SESSIONS_LOCK,
        ttl_seconds=SESSION_TTL_SECONDS,
        now_ts=time.time(),
    )
    if removed:
        log_event(logging.INFO, 'sessions_purged', count=removed)
    return removed


def _run_periodic_cleanup():
    """Background thread: periodically evict stale study sessions."""
    while True:
        time.sleep(SESSION_CLEANUP_INTERVAL_SECONDS)
        try:
            cleanup_expired_sessions()
        except Exception as e:
            logger.warning(f"Session cleanup failed: {e}")


_cleanup_thread = threading.Thread(target=_run_periodic_cleanup, daemon=True)
_cleanup_thread.start()


# =============================================
# RUNTIME BINDINGS
# =============================================

def verify_firebase_token(request):
    return auth_service.verify_firebase_token(request, auth, logger)


def get_session_snapshot(session_id):
    return session_state_service.get_session_snapshot(session_id, sessions_store=sessions, lock=SESSIONS_LOCK)


def mutate_session(session_id, mutator_fn):
    return session_state_service.mutate_session(session_id, mutator_fn, sessions_store=sessions, lock=SESSIONS_LOCK)


def set_session(session_id, value):
    return session_state_service.set_session(session_id, value, sessions_store=sessions, lock=SESSIONS_LOCK)


def delete_session(session_id):
    return session_state_service.delete_session(session_id, sessions_store=sessions, lock=SESSIONS_LOCK)


def extract_all_pdf_text(pdf_bytes):
    return pdf_text_service.extract_all_pdf_text(pdf_bytes)


def analyze_image(image_bytes, mime_type, output_language):
    return gemini_service.analyze_image(image_bytes, mime_type, output_language, client=client, model=GEMINI_MODEL)


def analyze_multiple_images(images, output_language):
    return gemini_service.analyze_multiple_images(images, output_language, client=client, model=GEMINI_MODEL)


def analyze_pdf_content(text, output_language):
    return gemini_service.analyze_pdf_content(text, output_language, client=client, model=GEMINI_MODEL)


def analyze_individual_page(text, page_number, output_language):
    return gemini_service.analyze_individual_page(text, page_number, output_language, client=client, model=GEMINI_MODEL)


def analyze_pdf_content_comprehensive(full_text, output_language):
    return gemini_service.analyze_pdf_content_comprehensive(full_text, output_language, client=client, model=GEMINI_MODEL)


def generate_questions(analyses, difficulty, output_language):
    return gemini_service.generate_questions(analyses, difficulty, output_language, client=client, model=GEMINI_MODEL)


def save_study_history(uid, record_type, data, options):
    return history_service.save_study_history(uid, record_type, data, options, db=db, bucket=bucket)


# =============================================
# ROUTE IMPLEMENTATIONS
# =============================================

def _ctx():
    return sys.modules[__name__]


def healthz_impl():
    return jsonify({'status': 'ok'}), 200


def get_config_impl():
    return jsonify({
        'difficulties': [
            {'value': level, 'description': prompt_registry.DIFFICULTY_DESCRIPTIONS[level]}
            for level in prompt_registry.DIFFICULTY_LEVELS
        ],
        'default_difficulty': prompt_registry.DEFAULT_DIFFICULTY,
        'output_languages': sorted(prompt_registry.OUTPUT_LANGUAGE_MAP),
        'default_output_language': prompt_registry.DEFAULT_OUTPUT_LANGUAGE_KEY,
        'max_upload_files': MAX_UPLOAD_FILES,
        'max_upload_file_mb': CONFIG.max_upload_file_mb,
        'ai_enabled': client is not None,
        'history_enabled': db is not None,
    })


def create_session_impl():
    return assistant_api_service.create_session(_ctx(), request)


def get_session_impl(session_id):
    return assistant_api_service.get_session(_ctx(), request, session_id)


def update_session_impl(session_id):
    return assistant_api_service.update_preferences(_ctx(), request, session_id)


def delete_session_impl(session_id):
    return assistant_api_service.delete_session(_ctx(), request, session_id)


def upload_files_impl(session_id):
    return assistant_api_service.upload_files(_ctx(), request, session_id)


def analyze_session_impl(session_id):
    return assistant_api_service.analyze_session(_ctx(), request, session_id)


def quick_quiz_impl(session_id):
    return assistant_api_service.quick_quiz(_ctx(), request, session_id)


def select_page_range_impl(session_id):
    return assistant_api_service.select_page_range(_ctx(), request, session_id)


def analyze_all_pages_comprehensive_impl(session_id):
    return assistant_api_service.analyze_all_pages_comprehensive(_ctx(), request, session_id)


def analyze_navigator_page_impl(session_id, page_number):
    return assistant_api_service.analyze_navigator_page(_ctx(), request, session_id, page_number)


def analyze_navigator_all_pages_impl(session_id):
    return assistant_api_service.analyze_navigator_all_pages(_ctx(), request, session_id)


def add_comprehensive_page_impl(session_id, page_number):
    return assistant_api_service.add_comprehensive_page(_ctx(), request, session_id, page_number)


def generate_questions_impl(session_id):
    return assistant_api_service.generate_questions(_ctx(), request, session_id)


def start_quiz_impl(session_id):
    return assistant_api_service.start_quiz(_ctx(), request, session_id)


def answer_question_impl(session_id):
    return assistant_api_service.answer_question(_ctx(), request, session_id)


def previous_question_impl(session_id):
    return assistant_api_service.previous_question(_ctx(), request, session_id)


def submit_quiz_impl(session_id):
    return assistant_api_service.submit_quiz(_ctx(), request, session_id)


def back_to_analysis_impl(session_id):
    return assistant_api_service.back_to_analysis(_ctx(), request, session_id)


def reset_session_impl(session_id):
    return assistant_api_service.reset_session(_ctx(), request, session_id)


def download_session_report_impl(session_id):
    return report_api_service.download_session_report(_ctx(), request, session_id)


def download_page_report_impl(session_id, page_number):
    return report_api_service.download_page_report(_ctx(), request, session_id, page_number)


def list_history_impl():
    return history_api_service.list_history(_ctx(), request)


def save_history_impl():
    return history_api_service.save_session_analysis(_ctx(), request)


def get_history_record_impl(record_id):
    return history_api_service.get_history_record(_ctx(), request, record_id)


def delete_history_record_impl(record_id):
    return history_api_service.delete_history_record(_ctx(), request, record_id)


def download_history_report_impl(record_id):
    return report_api_service.download_history_report(_ctx(), request, record_id)


from study_assistant.blueprints import assistant_bp, history_bp, reports_bp, system_bp  # noqa: E402

app.register_blueprint(system_bp)
app.register_blueprint(assistant_bp)
app.register_blueprint(reports_bp)
app.register_blueprint(history_bp)
