import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration


def init_sentry(config) -> bool:
    if not config.sentry_dsn:
        return False
    sentry_sdk.init(
        dsn=config.sentry_dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=config.sentry_traces_sample_rate,
        send_default_pii=False,
        environment=config.sentry_environment,
        release=config.sentry_release,
    )
    return True


def init_extensions(app, config) -> None:
    """Attach error reporting and record factory state on the app."""
    if app is None:
        return
    if not hasattr(app, 'extensions'):
        return
    state = app.extensions.setdefault('study_assistant', {})
    if not state.get('factory_initialized'):
        state['sentry_enabled'] = init_sentry(config)
    state['factory_initialized'] = True
