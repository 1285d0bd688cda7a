"""Firebase ID token helpers."""


def bearer_token(request):
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return ''
    return auth_header.split('Bearer ', 1)[1].strip()


def verify_firebase_token(request, auth_module, logger):
    """Return the decoded Firebase token dict, or None when invalid/missing."""
    token = bearer_token(request)
    if not token:
        return None
    try:
        return auth_module.verify_id_token(token)
    except Exception as exc:
        if logger is not None:
            logger.info(f"Token verification failed: {exc}")
        return None


def session_owner_matches(session, decoded_token):
    """Anonymous sessions stay anonymous; owned sessions need the same uid."""
    owner = str(session.get('uid', '') or '')
    caller = str((decoded_token or {}).get('uid', '') or '')
    return owner == caller
