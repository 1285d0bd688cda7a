"""Business logic handlers for study history APIs."""


def _storage_unavailable(app_ctx):
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Study history is not available on this server.'}), 503
    return None


def _owned_record(app_ctx, uid, record_id):
    """Return ``(record, error_response)`` for a record owned by ``uid``."""
    record, exists = app_ctx.history_service.get_record(record_id, db=app_ctx.db)
    if not exists:
        return None, (app_ctx.jsonify({'error': 'Study history record not found'}), 404)
    if record.get('userId', '') != uid:
        return None, (app_ctx.jsonify({'error': 'Forbidden'}), 403)
    return record, None


def list_history(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    unavailable = _storage_unavailable(app_ctx)
    if unavailable:
        return unavailable
    uid = decoded_token['uid']
    try:
        records = app_ctx.history_service.get_study_history(uid, db=app_ctx.db)
        return app_ctx.jsonify({
            'records': records,
            'stats': app_ctx.history_service.history_stats(records),
        })
    except Exception as e:
        app_ctx.logger.error(f"Error fetching study history for user {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load study history'}), 500


def get_history_record(app_ctx, request, record_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    unavailable = _storage_unavailable(app_ctx)
    if unavailable:
        return unavailable
    uid = decoded_token['uid']
    try:
        record, error = _owned_record(app_ctx, uid, record_id)
        if error:
            return error
        return app_ctx.jsonify({'record': record})
    except Exception as e:
        app_ctx.logger.error(f"Error fetching study history record {record_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not load study history record'}), 500


def delete_history_record(app_ctx, request, record_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    unavailable = _storage_unavailable(app_ctx)
    if unavailable:
        return unavailable
    uid = decoded_token['uid']
    try:
        record, error = _owned_record(app_ctx, uid, record_id)
        if error:
            return error
        files_removed = app_ctx.history_service.delete_study_history(
            record_id,
            record.get('storagePaths', []),
            db=app_ctx.db,
            bucket=app_ctx.bucket,
        )
        app_ctx.log_event(app_ctx.logging.INFO, 'history_deleted', uid=uid, record_id=record_id, files_removed=files_removed)
        return app_ctx.jsonify({'ok': True, 'files_removed': files_removed})
    except Exception as e:
        app_ctx.logger.error(f"Error deleting study history record {record_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not delete study history record'}), 500


def save_session_analysis(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    unavailable = _storage_unavailable(app_ctx)
    if unavailable:
        return unavailable
    uid = decoded_token['uid']
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return app_ctx.jsonify({'error': 'Invalid payload'}), 400
    session_id = str(payload.get('session_id', '') or '').strip()
    if not session_id:
        return app_ctx.jsonify({'error': 'session_id is required'}), 400
    session = app_ctx.get_session_snapshot(session_id)
    if session is None:
        return app_ctx.jsonify({'error': 'Study session not found'}), 404
    if session.get('uid') and session['uid'] != uid:
        return app_ctx.jsonify({'error': 'Forbidden'}), 403
    analysis_results = session.get('analysis_results') or []
    if not analysis_results:
        return app_ctx.jsonify({'error': 'No analysis to save yet'}), 400

    files = session.get('files') or []
    include_files = payload.get('include_files', True) is not False
    try:
        record_id = app_ctx.save_study_history(uid, 'analysis', analysis_results, {
            'fileName': files[0]['name'] if files else analysis_results[0].get('fileName'),
            'difficulty': session['difficulty'],
            'language': session['output_language'],
            'files': files if include_files else [],
        })
        app_ctx.log_event(app_ctx.logging.INFO, 'history_saved', uid=uid, record_id=record_id, record_type='analysis', files=len(files) if include_files else 0)
        return app_ctx.jsonify({'ok': True, 'id': record_id}), 201
    except Exception as e:
        app_ctx.logger.error(f"Error saving study history for user {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not save to study history'}), 500
