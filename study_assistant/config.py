import os
from dataclasses import dataclass, field

from dotenv import find_dotenv, load_dotenv

DEV_ENV_NAMES = {'development', 'dev', 'local', 'test'}


def safe_int_env(name, default=0, minimum=1, maximum=100000):
    raw = str(os.getenv(name, str(default)) or '').strip()
    try:
        value = int(raw)
    except Exception:
        value = int(default)
    return min(max(value, minimum), maximum)


def safe_float_env(name, default=0.0, minimum=0.0, maximum=1.0):
    raw = str(os.getenv(name, str(default)) or '').strip()
    try:
        value = float(raw)
    except Exception:
        return default
    return min(max(value, minimum), maximum)


def _env_str(name, default=''):
    return (os.getenv(name, default) or default).strip()


def resolve_runtime_env():
    return (
        os.getenv('SENTRY_ENVIRONMENT')
        or os.getenv('FLASK_ENV')
        or os.getenv('ENV')
        or ('production' if os.getenv('RENDER') else 'development')
    ).strip().lower()


@dataclass(frozen=True)
class AppConfig:
    """Central config object, read from the environment at construction time."""

    flask_secret_key: str = field(default_factory=lambda: os.getenv('FLASK_SECRET_KEY', ''))
    log_level: str = field(default_factory=lambda: _env_str('LOG_LEVEL', 'INFO').upper())
    gemini_api_key: str = field(default_factory=lambda: _env_str('GEMINI_API_KEY'))
    gemini_model: str = field(default_factory=lambda: _env_str('GEMINI_MODEL', 'gemini-2.5-flash'))
    firebase_credentials: str = field(default_factory=lambda: _env_str('FIREBASE_CREDENTIALS'))
    firebase_storage_bucket: str = field(default_factory=lambda: _env_str('FIREBASE_STORAGE_BUCKET'))
    sentry_dsn: str = field(default_factory=lambda: _env_str('SENTRY_DSN_BACKEND'))
    sentry_environment: str = field(default_factory=lambda: _env_str('SENTRY_ENVIRONMENT', os.getenv('FLASK_ENV', 'production') or 'production'))
    sentry_release: str = field(default_factory=lambda: _env_str('SENTRY_RELEASE', 'study-assistant'))
    sentry_traces_sample_rate: float = field(default_factory=lambda: safe_float_env('SENTRY_TRACES_SAMPLE_RATE', 0.0))
    max_upload_file_mb: int = field(default_factory=lambda: safe_int_env('MAX_UPLOAD_FILE_MB', 10, minimum=1, maximum=50))
    max_upload_files: int = field(default_factory=lambda: safe_int_env('MAX_UPLOAD_FILES', 10, minimum=1, maximum=50))
    session_ttl_seconds: int = field(default_factory=lambda: safe_int_env('SESSION_TTL_SECONDS', 2 * 60 * 60, minimum=60, maximum=7 * 24 * 3600))
    page_analysis_delay_seconds: float = field(default_factory=lambda: safe_float_env('PAGE_ANALYSIS_DELAY_SECONDS', 1.0, maximum=10.0))


def load_config() -> AppConfig:
    load_dotenv(find_dotenv(usecwd=True))
    config = AppConfig()
    is_dev_like = resolve_runtime_env() in DEV_ENV_NAMES
    if not is_dev_like and not config.flask_secret_key.strip():
        raise RuntimeError('FLASK_SECRET_KEY must be set in non-development environments.')
    return config
