"""Business logic handlers for PDF report downloads."""

SESSION_REPORT_TYPES = ('analysis', 'keypoints', 'questions', 'quiz-results')


def _send_report(app_ctx, title, content, report_type):
    pdf_io = app_ctx.report_service.build_report_pdf(title, content, report_type)
    return app_ctx.send_file(
        pdf_io,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=app_ctx.report_service.report_filename(title),
    )


def _load_owned_session(app_ctx, request, session_id):
    session = app_ctx.get_session_snapshot(session_id)
    if session is None:
        return None, (app_ctx.jsonify({'error': 'Study session not found'}), 404)
    if session.get('uid'):
        decoded_token = app_ctx.verify_firebase_token(request)
        if not decoded_token:
            return None, (app_ctx.jsonify({'error': 'Unauthorized'}), 401)
        if decoded_token.get('uid') != session['uid']:
            return None, (app_ctx.jsonify({'error': 'Forbidden'}), 403)
    return session, None


def _session_report_payload(session, report_type):
    """Return ``(title, content)`` or ``(None, None)`` when nothing is ready."""
    question_result = session.get('question_result') or {}
    difficulty = str(question_result.get('difficulty') or session.get('difficulty') or 'medium').upper()
    if report_type in ('analysis', 'keypoints'):
        analyses = session.get('analysis_results') or []
        if not analyses:
            comprehensive = session.get('comprehensive_results') or {}
            analyses = [
                dict(page, mainTopic=f"Page {page.get('pageNumber')}")
                for page in comprehensive.get('pageAnalyses', [])
            ]
        if not analyses:
            return None, None
        return 'TNPSC Study Analysis', analyses
    if report_type == 'questions':
        questions = question_result.get('questions') or []
        if not questions:
            return None, None
        return f'TNPSC Questions - {difficulty}', questions
    quiz_result = session.get('quiz_result')
    if not quiz_result:
        return None, None
    return f'TNPSC Quiz Results - {difficulty}', quiz_result


def download_session_report(app_ctx, request, session_id):
    session, error = _load_owned_session(app_ctx, request, session_id)
    if error:
        return error
    report_type = str(request.args.get('type', 'analysis') or 'analysis').strip().lower()
    if report_type not in SESSION_REPORT_TYPES:
        return app_ctx.jsonify({'error': 'type must be one of: ' + ', '.join(SESSION_REPORT_TYPES)}), 400
    title, content = _session_report_payload(session, report_type)
    if title is None:
        return app_ctx.jsonify({'error': 'Nothing to download yet for this report type'}), 404
    try:
        return _send_report(app_ctx, title, content, report_type)
    except Exception as e:
        app_ctx.logger.error(f"Error building {report_type} report for session {session_id}: {e}")
        return app_ctx.jsonify({'error': 'Failed to download results. Please try again.'}), 500


def download_page_report(app_ctx, request, session_id, page_number):
    session, error = _load_owned_session(app_ctx, request, session_id)
    if error:
        return error
    analysis = (session.get('page_analyses') or {}).get(page_number)
    if not analysis:
        return app_ctx.jsonify({'error': 'No analysis available for this page'}), 404
    file_name = (session.get('pdf_info') or {}).get('fileName', '')
    title = f'Page {page_number} Analysis - {file_name}'
    try:
        return _send_report(app_ctx, title, [analysis], 'analysis')
    except Exception as e:
        app_ctx.logger.error(f"Error building page {page_number} report for session {session_id}: {e}")
        return app_ctx.jsonify({'error': 'Failed to download analysis'}), 500


def download_history_report(app_ctx, request, record_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Study history is not available on this server.'}), 503
    uid = decoded_token['uid']
    try:
        record, exists = app_ctx.history_service.get_record(record_id, db=app_ctx.db)
        if not exists:
            return app_ctx.jsonify({'error': 'Study history record not found'}), 404
        if record.get('userId', '') != uid:
            return app_ctx.jsonify({'error': 'Forbidden'}), 403
        title, content, report_type = app_ctx.history_service.report_payload_for_record(record)
        return _send_report(app_ctx, title, content, report_type)
    except Exception as e:
        app_ctx.logger.error(f"Error exporting study history record {record_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not export PDF'}), 500
