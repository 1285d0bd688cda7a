"""Business logic handlers for study session APIs."""

import copy


def _public(app_ctx, session):
    return app_ctx.session_state_service.public_view(session, app_ctx.file_service.public_file_info)


def _session_response(app_ctx, session, status=200, **extra):
    payload = {'session': _public(app_ctx, session)}
    payload.update(extra)
    return app_ctx.jsonify(payload), status


def _load_session(app_ctx, request, session_id):
    """Return ``(session, decoded_token, error_response)``."""
    session = app_ctx.get_session_snapshot(session_id)
    if session is None:
        return None, None, (app_ctx.jsonify({'error': 'Study session not found'}), 404)
    decoded_token = app_ctx.verify_firebase_token(request)
    if session.get('uid'):
        if not decoded_token:
            return None, None, (app_ctx.jsonify({'error': 'Unauthorized'}), 401)
        if not app_ctx.auth_service.session_owner_matches(session, decoded_token):
            return None, None, (app_ctx.jsonify({'error': 'Forbidden'}), 403)
    return session, decoded_token, None


def _conflict(app_ctx, exc):
    return app_ctx.jsonify({'error': str(exc), 'view': exc.current_view, 'target_view': exc.target_view}), 409


def _ai_unavailable(app_ctx):
    if app_ctx.client is None:
        return app_ctx.jsonify({'error': 'AI analysis is not configured on this server.'}), 503
    return None


def _apply(app_ctx, session_id, mutator_fn):
    """Run a mutation; returns the updated snapshot or None when the session is gone."""
    return app_ctx.mutate_session(session_id, mutator_fn)


def _gone(app_ctx):
    return app_ctx.jsonify({'error': 'Study session not found'}), 404


def _ai_failure(app_ctx, exc, action, session_id):
    if isinstance(exc, app_ctx.gemini_service.AIResponseError):
        app_ctx.logger.error(f"AI response rejected while {action} for session {session_id}: {exc}")
        return app_ctx.jsonify({'error': f'The AI response could not be used. Failed {action}. Please try again.'}), 502
    app_ctx.logger.error(f"Error {action} for session {session_id}: {exc}")
    return app_ctx.jsonify({'error': f'Failed {action}. Please try again.'}), 500


def _parse_preferences(app_ctx, payload, current_difficulty, current_language):
    """Return ``(difficulty, language, error_message)``."""
    difficulty = current_difficulty
    language = current_language
    if 'difficulty' in payload:
        raw = str(payload.get('difficulty') or '').strip().lower()
        if raw not in app_ctx.prompt_registry.DIFFICULTY_LEVELS:
            return None, None, 'difficulty must be one of: ' + ', '.join(app_ctx.prompt_registry.DIFFICULTY_LEVELS)
        difficulty = raw
    if 'output_language' in payload:
        raw = str(payload.get('output_language') or '').strip().lower()
        if raw not in app_ctx.prompt_registry.OUTPUT_LANGUAGE_MAP:
            return None, None, 'output_language must be one of: ' + ', '.join(sorted(app_ctx.prompt_registry.OUTPUT_LANGUAGE_MAP))
        language = raw
    return difficulty, language, ''


def create_session(app_ctx, request):
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return app_ctx.jsonify({'error': 'Invalid payload'}), 400
    difficulty, language, error = _parse_preferences(
        app_ctx,
        payload,
        app_ctx.prompt_registry.DEFAULT_DIFFICULTY,
        app_ctx.prompt_registry.DEFAULT_OUTPUT_LANGUAGE_KEY,
    )
    if error:
        return app_ctx.jsonify({'error': error}), 400
    decoded_token = app_ctx.verify_firebase_token(request)
    uid = decoded_token['uid'] if decoded_token else ''
    session_id = app_ctx.uuid.uuid4().hex
    session = app_ctx.session_state_service.new_session(session_id, uid, difficulty, language, app_ctx.time.time())
    app_ctx.set_session(session_id, session)
    app_ctx.log_event(app_ctx.logging.INFO, 'session_created', session_id=session_id, signed_in=bool(uid))
    return _session_response(app_ctx, session, 201)


def get_session(app_ctx, request, session_id):
    session, _decoded, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    return _session_response(app_ctx, session)


def update_preferences(app_ctx, request, session_id):
    session, _decoded, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return app_ctx.jsonify({'error': 'Invalid payload'}), 400
    difficulty, language, error_message = _parse_preferences(app_ctx, payload, session['difficulty'], session['output_language'])
    if error_message:
        return app_ctx.jsonify({'error': error_message}), 400

    def _update(state):
        state['difficulty'] = difficulty
        state['output_language'] = language
        state['updated_at'] = app_ctx.time.time()

    updated = _apply(app_ctx, session_id, _update)
    if updated is None:
        return _gone(app_ctx)
    return _session_response(app_ctx, updated)


def upload_files(app_ctx, request, session_id):
    session, _decoded, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    if session['view'] != app_ctx.session_state_service.VIEW_UPLOAD:
        return app_ctx.jsonify({'error': 'Files can only be selected on the upload screen. Reset the session first.'}), 409
    uploaded_files = request.files.getlist('files')
    if not uploaded_files:
        return app_ctx.jsonify({'error': 'Please select files to analyze'}), 400

    accepted, rejected = app_ctx.file_service.validate_uploads(
        uploaded_files,
        max_files=app_ctx.MAX_UPLOAD_FILES,
        max_file_bytes=app_ctx.MAX_UPLOAD_FILE_BYTES,
        secure_filename_fn=app_ctx.secure_filename,
    )
    if not accepted:
        return app_ctx.jsonify({'error': app_ctx.file_service.UNSUPPORTED_FILES_MESSAGE, 'rejected': rejected}), 400

    def _update(state):
        state['files'] = accepted
        state['updated_at'] = app_ctx.time.time()

    updated = _apply(app_ctx, session_id, _update)
    if updated is None:
        return _gone(app_ctx)
    warning = app_ctx.file_service.UNSUPPORTED_FILES_MESSAGE if rejected else ''
    return _session_response(app_ctx, updated, rejected=rejected, warning=warning)


def _first_pdf(files):
    return next((entry for entry in files if entry.get('kind') == 'pdf'), None)


def _images_of(files):
    return [
        {'data': entry['data'], 'mime_type': entry['mime_type'], 'name': entry['name']}
        for entry in files
        if entry.get('kind') == 'image'
    ]


def _label_image_results(results, language):
    for result in results:
        result['language'] = language
        study_points = result.get('studyPoints') or []
        result['mainTopic'] = (study_points[0].get('title') if study_points else '') or 'Study Material'
    return results


def _analyze_whole_pdf(app_ctx, pdf_entry, language):
    """Analyse a PDF with no extractable page text by sending the document itself."""
    analysis = app_ctx.analyze_image(pdf_entry['data'], 'application/pdf', language)
    analysis['language'] = language
    analysis['fileName'] = pdf_entry['name']
    analysis['mainTopic'] = pdf_entry['name']
    return analysis


def analyze_session(app_ctx, request, session_id):
    session, _decoded, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    files = session.get('files') or []
    if not files:
        return app_ctx.jsonify({'error': 'Please select files to analyze'}), 400
    try:
        app_ctx.session_state_service.ensure_transition(session, app_ctx.session_state_service.VIEW_ANALYSIS)
    except app_ctx.session_state_service.InvalidTransition as exc:
        return _conflict(app_ctx, exc)
    unavailable = _ai_unavailable(app_ctx)
    if unavailable:
        return unavailable

    language = session['output_language']
    pdf_entry = _first_pdf(files)
    started_at = app_ctx.time.time()
    try:
        if pdf_entry:
            full_text = app_ctx.extract_all_pdf_text(pdf_entry['data'])
            total_pages = app_ctx.pdf_text_service.find_total_pages(full_text)
            page_texts = app_ctx.pdf_text_service.split_pages(full_text)
            if total_pages > 0 and any(text.strip() for text in page_texts.values()):
                pdf_info = {
                    'fileName': pdf_entry['name'],
                    'totalPages': total_pages,
                    'startPage': 1,
                    'endPage': total_pages,
                }

                def _select_pages(state):
                    app_ctx.session_state_service.transition(state, app_ctx.session_state_service.VIEW_PDF_PAGE_SELECT, app_ctx.time.time())
                    state['pdf_info'] = pdf_info
                    state['pdf_full_text'] = full_text
                    state['page_analyses'] = {}
                    state['comprehensive_results'] = None

                updated = _apply(app_ctx, session_id, _select_pages)
                if updated is None:
                    return _gone(app_ctx)
                return _session_response(
                    app_ctx,
                    updated,
                    quick_ranges=app_ctx.pdf_text_service.quick_page_ranges(total_pages),
                )
            app_ctx.logger.info(f"No page text found in {pdf_entry['name']}; analysing the whole document")
            results = [_analyze_whole_pdf(app_ctx, pdf_entry, language)]
        else:
            results = _label_image_results(app_ctx.analyze_multiple_images(_images_of(files), language), language)
    except app_ctx.session_state_service.InvalidTransition as exc:
        return _conflict(app_ctx, exc)
    except ValueError as exc:
        return app_ctx.jsonify({'error': str(exc)}), 400
    except Exception as exc:
        return _ai_failure(app_ctx, exc, 'to analyze files', session_id)

    def _store(state):
        app_ctx.session_state_service.transition(state, app_ctx.session_state_service.VIEW_ANALYSIS, app_ctx.time.time())
        state['analysis_results'] = results

    try:
        updated = _apply(app_ctx, session_id, _store)
    except app_ctx.session_state_service.InvalidTransition as exc:
        return _conflict(app_ctx, exc)
    if updated is None:
        return _gone(app_ctx)
    app_ctx.log_event(
        app_ctx.logging.INFO,
        'analysis_completed',
        session_id=session_id,
        results=len(results),
        duration_seconds=round(app_ctx.time.time() - started_at, 2),
    )
    return _session_response(app_ctx, updated)


def select_page_range(app_ctx, request, session_id):
    session, _decoded, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    pdf_info = session.get('pdf_info') or {}
    if not pdf_info:
        return app_ctx.jsonify({'error': 'No PDF is selected in this session'}), 409
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return app_ctx.jsonify({'error': 'Invalid payload'}), 400
    try:
        start_page, end_page = app_ctx.pdf_text_service.parse_page_range(
            payload.get('start_page'),
            payload.get('end_page'),
            pdf_info.get('totalPages', 0),
        )
    except ValueError as exc:
        return app_ctx.jsonify({'error': str(exc)}), 400
    mode = str(payload.get('mode', 'navigate') or 'navigate').strip().lower()
    if mode not in {'navigate', 'analyze'}:
        return app_ctx.jsonify({'error': "mode must be 'navigate' or 'analyze'"}), 400

    if mode == 'navigate':
        def _navigate(state):
            app_ctx.session_state_service.transition(state, app_ctx.session_state_service.VIEW_PDF_NAVIGATOR, app_ctx.time.time())
            state['pdf_info'] = dict(state['pdf_info'], startPage=start_page, endPage=end_page)

        try:
            updated = _apply(app_ctx, session_id, _navigate)
        except app_ctx.session_state_service.InvalidTransition as exc:
            return _conflict(app_ctx, exc)
        if updated is None:
            return _gone(app_ctx)
        return _session_response(app_ctx, updated)

    try:
        app_ctx.session_state_service.ensure_transition(session, app_ctx.session_state_service.VIEW_ANALYSIS)
    except app_ctx.session_state_service.InvalidTransition as exc:
        return _conflict(app_ctx, exc)
    unavailable = _ai_unavailable(app_ctx)
    if unavailable:
        return unavailable
    language = session['output_language']
    try:
        content = app_ctx.pdf_text_service.extract_page_range(session['pdf_full_text'], start_page, end_page)
        analysis = app_ctx.analyze_pdf_content(content, language)
    except ValueError as exc:
        return app_ctx.jsonify({'error': str(exc)}), 400
    except Exception as exc:
        return _ai_failure(app_ctx, exc, 'to analyze PDF', session_id)
    analysis['language'] = language
    analysis['fileName'] = pdf_info.get('fileName', '')
    analysis['mainTopic'] = f"{pdf_info.get('fileName', '')} (Pages {start_page}-{end_page})".strip()

    def _store(state):
        app_ctx.session_state_service.transition(state, app_ctx.session_state_service.VIEW_ANALYSIS, app_ctx.time.time())
        state['pdf_info'] = dict(state['pdf_info'], startPage=start_page, endPage=end_page)
        state['analysis_results'] = [analysis]

    try:
        updated = _apply(app_ctx, session_id, _store)
    except app_ctx.session_state_service.InvalidTransition as exc:
        return _conflict(app_ctx, exc)
    if updated is None:
        return _gone(app_ctx)
    app_ctx.log_event(app_ctx.logging.INFO, 'analysis_completed', session_id=session_id, start_page=start_page, end_page=end_page)
    return _session_response(app_ctx, updated)


def analyze_all_pages_comprehensive(app_ctx, request, session_id):
    session, _decoded, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    if not session.get('pdf_info'):
        return app_ctx.jsonify({'error': 'No PDF is selected in this session'}), 409
    try:
        app_ctx.session_state_service.ensure_transition(session, app_ctx.session_state_service.VIEW_COMPREHENSIVE_PDF)
    except app_ctx.session_state_service.InvalidTransition as exc:
        return _conflict(app_ctx, exc)
    unavailable = _ai_unavailable(app_ctx)
    if unavailable:
        return unavailable
    try:
        result = app_ctx.analyze_pdf_content_comprehensive(session['pdf_full_text'], session['output_language'])
    except ValueError as exc:
        return app_ctx.jsonify({'error': str(exc)}), 400
    except Exception as exc:
        return _ai_failure(app_ctx, exc, 'to analyze PDF comprehensively', session_id)

    def _store(state):
        app_ctx.session_state_service.transition(state, app_ctx.session_state_service.VIEW_COMPREHENSIVE_PDF, app_ctx.time.time())
        state['comprehensive_results'] = result

    try:
        updated = _apply(app_ctx, session_id, _store)
    except app_ctx.session_state_service.InvalidTransition as exc:
        return _conflict(app_ctx, exc)
    if updated is None:
        return _gone(app_ctx)
    app_ctx.log_event(app_ctx.logging.INFO, 'comprehensive_analysis_completed', session_id=session_id, pages=len(result['pageAnalyses']))
    return _session_response(app_ctx, updated, message=f"Comprehensive analysis completed! Analyzed {len(result['pageAnalyses'])} pages.")


def _checked_page_number(app_ctx, session, page_number):
    """Return ``(page_number, error_response)``."""
    total_pages = int((session.get('pdf_info') or {}).get('totalPages', 0) or 0)
    if page_number < 1 or page_number > total_pages:
        return None, (app_ctx.jsonify({'error': f'Page {page_number} is outside the document (1-{total_pages})'}), 400)
    return page_number, None


def analyze_navigator_page(app_ctx, request, session_id, page_number):
    session, _decoded, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    if session['view'] != app_ctx.session_state_service.VIEW_PDF_NAVIGATOR:
        return app_ctx.jsonify({'error': 'Page analysis is only available in the PDF navigator'}), 409
    page_number, error = _checked_page_number(app_ctx, session, page_number)
    if error:
        return error
    cached = (session.get('page_analyses') or {}).get(page_number)
    if cached:
        return app_ctx.jsonify({'page_analysis': cached, 'cached': True})
    page_text = app_ctx.pdf_text_service.page_body(session['pdf_full_text'], page_number)
    if not page_text.strip():
        return app_ctx.jsonify({'error': f'No content found on page {page_number}'}), 404
    unavailable = _ai_unavailable(app_ctx)
    if unavailable:
        return unavailable
    try:
        analysis = app_ctx.analyze_individual_page(page_text, page_number, session['output_language'])
    except ValueError as exc:
        return app_ctx.jsonify({'error': str(exc)}), 404
    except Exception as exc:
        return _ai_failure(app_ctx, exc, f'to analyze page {page_number}', session_id)

    def _store(state):
        page_analyses = dict(state.get('page_analyses') or {})
        page_analyses[page_number] = analysis
        state['page_analyses'] = page_analyses
        state['updated_at'] = app_ctx.time.time()

    if _apply(app_ctx, session_id, _store) is None:
        return _gone(app_ctx)
    return app_ctx.jsonify({'page_analysis': analysis, 'cached': False, 'message': f'Page {page_number} analyzed successfully!'})


def analyze_navigator_all_pages(app_ctx, request, session_id):
    session, _decoded, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    if session['view'] != app_ctx.session_state_service.VIEW_PDF_NAVIGATOR:
        return app_ctx.jsonify({'error': 'Page analysis is only available in the PDF navigator'}), 409
    unavailable = _ai_unavailable(app_ctx)
    if unavailable:
        return unavailable
    total_pages = int(session['pdf_info'].get('totalPages', 0) or 0)
    pages = app_ctx.pdf_text_service.split_pages(session['pdf_full_text'])
    cached = session.get('page_analyses') or {}
    analyzed, skipped, failed = [], [], []
    pending = []
    for page_number in range(1, total_pages + 1):
        if page_number in cached:
            continue
        if pages.get(page_number, '').strip():
            pending.append(page_number)
        else:
            skipped.append(page_number)
    for position, page_number in enumerate(pending):
        page_text = pages[page_number]
        try:
            analysis = app_ctx.analyze_individual_page(page_text, page_number, session['output_language'])
        except Exception as exc:
            app_ctx.logger.error(f"Error analyzing page {page_number} for session {session_id}: {exc}")
            failed.append(page_number)
            continue

        def _store(state, page_number=page_number, analysis=analysis):
            page_analyses = dict(state.get('page_analyses') or {})
            page_analyses[page_number] = analysis
            state['page_analyses'] = page_analyses
            state['updated_at'] = app_ctx.time.time()

        if _apply(app_ctx, session_id, _store) is None:
            return _gone(app_ctx)
        analyzed.append(page_number)
        if position < len(pending) - 1 and app_ctx.PAGE_ANALYSIS_DELAY_SECONDS > 0:
            app_ctx.time.sleep(app_ctx.PAGE_ANALYSIS_DELAY_SECONDS)

    updated = app_ctx.get_session_snapshot(session_id)
    if updated is None:
        return _gone(app_ctx)
    app_ctx.log_event(app_ctx.logging.INFO, 'navigator_pages_analyzed', session_id=session_id, analyzed=len(analyzed), skipped=len(skipped), failed=len(failed))
    return _session_response(
        app_ctx,
        updated,
        analyzed_pages=analyzed,
        skipped_pages=skipped,
        failed_pages=failed,
    )


def add_comprehensive_page(app_ctx, request, session_id, page_number):
    session, _decoded, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    if session['view'] != app_ctx.session_state_service.VIEW_COMPREHENSIVE_PDF or not session.get('comprehensive_results'):
        return app_ctx.jsonify({'error': 'Run the comprehensive analysis first'}), 409
    page_number, error = _checked_page_number(app_ctx, session, page_number)
    if error:
        return error
    existing_pages = {p.get('pageNumber') for p in session['comprehensive_results'].get('pageAnalyses', [])}
    if page_number in existing_pages:
        return _session_response(app_ctx, session, added=False)
    page_text = app_ctx.pdf_text_service.page_body(session['pdf_full_text'], page_number)
    if not page_text.strip():
        return app_ctx.jsonify({'error': f'No content found on page {page_number}'}), 404
    unavailable = _ai_unavailable(app_ctx)
    if unavailable:
        return unavailable
    try:
        analysis = app_ctx.analyze_individual_page(page_text, page_number, session['output_language'])
    except ValueError as exc:
        return app_ctx.jsonify({'error': str(exc)}), 404
    except Exception as exc:
        return _ai_failure(app_ctx, exc, f'to analyze page {page_number}', session_id)

    outcome = {'added': False}

    def _merge(state):
        merged = copy.deepcopy(state.get('comprehensive_results') or {})
        outcome['added'] = app_ctx.gemini_service.merge_page_analysis(merged, analysis)
        state['comprehensive_results'] = merged
        state['updated_at'] = app_ctx.time.time()

    updated = _apply(app_ctx, session_id, _merge)
    if updated is None:
        return _gone(app_ctx)
    return _session_response(app_ctx, updated, added=outcome['added'])


def _questions_for_range(app_ctx, session, payload, difficulty):
    total_pages = int((session.get('pdf_info') or {}).get('totalPages', 0) or 0)
    start_page, end_page = app_ctx.pdf_text_service.parse_page_range(
        payload.get('start_page', 1),
        payload.get('end_page', min(5, total_pages)),
        total_pages,
    )
    content = app_ctx.pdf_text_service.extract_page_range(session['pdf_full_text'], start_page, end_page)
    analysis = app_ctx.analyze_pdf_content(content, session['output_language'])
    return app_ctx.generate_questions([analysis], difficulty, session['output_language'])


def generate_questions(app_ctx, request, session_id):
    session, _decoded, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return app_ctx.jsonify({'error': 'Invalid payload'}), 400
    difficulty, _language, error_message = _parse_preferences(
        app_ctx,
        {k: v for k, v in payload.items() if k == 'difficulty'},
        session['difficulty'],
        session['output_language'],
    )
    if error_message:
        return app_ctx.jsonify({'error': error_message}), 400
    try:
        app_ctx.session_state_service.ensure_transition(session, app_ctx.session_state_service.VIEW_QUESTIONS)
    except app_ctx.session_state_service.InvalidTransition as exc:
        return _conflict(app_ctx, exc)
    from_range = session['view'] in (
        app_ctx.session_state_service.VIEW_COMPREHENSIVE_PDF,
        app_ctx.session_state_service.VIEW_PDF_NAVIGATOR,
    )
    if not from_range and not session.get('analysis_results'):
        return app_ctx.jsonify({'error': 'No analysis available to generate questions from'}), 400
    unavailable = _ai_unavailable(app_ctx)
    if unavailable:
        return unavailable
    try:
        if from_range:
            result = _questions_for_range(app_ctx, session, payload, difficulty)
        else:
            result = app_ctx.generate_questions(session['analysis_results'], difficulty, session['output_language'])
    except ValueError as exc:
        return app_ctx.jsonify({'error': str(exc)}), 400
    except Exception as exc:
        return _ai_failure(app_ctx, exc, 'to generate questions', session_id)

    def _store(state):
        app_ctx.session_state_service.transition(state, app_ctx.session_state_service.VIEW_QUESTIONS, app_ctx.time.time())
        state['question_result'] = result
        state['quiz'] = None
        state['quiz_result'] = None

    try:
        updated = _apply(app_ctx, session_id, _store)
    except app_ctx.session_state_service.InvalidTransition as exc:
        return _conflict(app_ctx, exc)
    if updated is None:
        return _gone(app_ctx)
    app_ctx.log_event(app_ctx.logging.INFO, 'questions_generated', session_id=session_id, difficulty=difficulty, total=result['totalQuestions'])
    return _session_response(app_ctx, updated)


def _new_quiz(app_ctx):
    return {'currentQuestionIndex': 0, 'answers': [], 'startedAt': app_ctx.time.time()}


def quick_quiz(app_ctx, request, session_id):
    session, _decoded, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    files = session.get('files') or []
    if not files:
        return app_ctx.jsonify({'error': 'Please select files first'}), 400
    try:
        app_ctx.session_state_service.ensure_transition(session, app_ctx.session_state_service.VIEW_QUICK_ANALYSIS)
    except app_ctx.session_state_service.InvalidTransition as exc:
        return _conflict(app_ctx, exc)
    unavailable = _ai_unavailable(app_ctx)
    if unavailable:
        return unavailable

    def _enter_quick_analysis(state):
        app_ctx.session_state_service.transition(state, app_ctx.session_state_service.VIEW_QUICK_ANALYSIS, app_ctx.time.time())

    try:
        if _apply(app_ctx, session_id, _enter_quick_analysis) is None:
            return _gone(app_ctx)
    except app_ctx.session_state_service.InvalidTransition as exc:
        return _conflict(app_ctx, exc)

    language = session['output_language']
    try:
        analyses = _label_image_results(app_ctx.analyze_multiple_images(_images_of(files), language), language)
        pdf_entry = _first_pdf(files)
        if pdf_entry:
            full_text = app_ctx.extract_all_pdf_text(pdf_entry['data'])
            if full_text.strip() and any(t.strip() for t in app_ctx.pdf_text_service.split_pages(full_text).values()):
                pdf_analysis = app_ctx.analyze_pdf_content(full_text, language)
                pdf_analysis.update({'language': language, 'fileName': pdf_entry['name'], 'mainTopic': pdf_entry['name']})
            else:
                pdf_analysis = _analyze_whole_pdf(app_ctx, pdf_entry, language)
            analyses.append(pdf_analysis)
        result = app_ctx.generate_questions(analyses, session['difficulty'], language)
    except Exception as exc:
        def _back_to_upload(state):
            app_ctx.session_state_service.transition(state, app_ctx.session_state_service.VIEW_UPLOAD, app_ctx.time.time())

        _apply(app_ctx, session_id, _back_to_upload)
        if isinstance(exc, ValueError):
            return app_ctx.jsonify({'error': str(exc)}), 400
        return _ai_failure(app_ctx, exc, 'to prepare the quick quiz', session_id)

    def _start(state):
        app_ctx.session_state_service.transition(state, app_ctx.session_state_service.VIEW_QUIZ, app_ctx.time.time())
        state['analysis_results'] = analyses
        state['question_result'] = result
        state['quiz'] = _new_quiz(app_ctx)
        state['quiz_result'] = None

    try:
        updated = _apply(app_ctx, session_id, _start)
    except app_ctx.session_state_service.InvalidTransition as exc:
        return _conflict(app_ctx, exc)
    if updated is None:
        return _gone(app_ctx)
    app_ctx.log_event(app_ctx.logging.INFO, 'quick_quiz_started', session_id=session_id, total=result['totalQuestions'])
    return _session_response(app_ctx, updated)


def start_quiz(app_ctx, request, session_id):
    session, _decoded, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    if not (session.get('question_result') or {}).get('questions'):
        return app_ctx.jsonify({'error': 'Generate questions before starting the quiz'}), 409

    def _start(state):
        app_ctx.session_state_service.transition(state, app_ctx.session_state_service.VIEW_QUIZ, app_ctx.time.time())
        state['quiz'] = _new_quiz(app_ctx)
        state['quiz_result'] = None

    try:
        updated = _apply(app_ctx, session_id, _start)
    except app_ctx.session_state_service.InvalidTransition as exc:
        return _conflict(app_ctx, exc)
    if updated is None:
        return _gone(app_ctx)
    return _session_response(app_ctx, updated)


def _active_quiz_or_error(app_ctx, session):
    if session['view'] != app_ctx.session_state_service.VIEW_QUIZ or not session.get('quiz'):
        return app_ctx.jsonify({'error': 'No quiz is in progress'}), 409
    if session.get('quiz_result'):
        return app_ctx.jsonify({'error': 'Quiz already completed'}), 409
    return None


def _complete_quiz(app_ctx, session_id, session, answers, decoded_token):
    questions = session['question_result'].get('questions', [])
    difficulty = session['question_result'].get('difficulty') or session['difficulty']
    now_ts = app_ctx.time.time()
    result = app_ctx.quiz_service.calculate_results(questions, answers, difficulty)
    result['timeTaken'] = app_ctx.quiz_service.time_taken(session['quiz'].get('startedAt', now_ts), now_ts)

    def _store(state):
        state['quiz'] = dict(state.get('quiz') or {}, answers=answers, completedAt=now_ts)
        state['quiz_result'] = result
        state['updated_at'] = now_ts

    updated = _apply(app_ctx, session_id, _store)
    if updated is None:
        return _gone(app_ctx)

    history_id = ''
    uid = (decoded_token or {}).get('uid', '')
    if uid and app_ctx.db is not None:
        try:
            history_id = app_ctx.save_study_history(uid, 'quiz', result, {
                'fileName': f'Quiz - {difficulty.upper()}',
                'difficulty': difficulty,
                'language': session['output_language'],
                'score': result['score'],
                'totalQuestions': result['totalQuestions'],
                'percentage': result['percentage'],
                'quizAnswers': result['answers'],
            })
        except Exception as exc:
            app_ctx.logger.error(f"Failed to save quiz results for user {uid}: {exc}")
    app_ctx.log_event(
        app_ctx.logging.INFO,
        'quiz_scored',
        session_id=session_id,
        score=result['score'],
        total=result['totalQuestions'],
        percentage=result['percentage'],
        saved=bool(history_id),
    )
    return _session_response(
        app_ctx,
        updated,
        completed=True,
        quiz_result=result,
        message=app_ctx.quiz_service.performance_message(result['percentage']),
        history_id=history_id,
    )


def answer_question(app_ctx, request, session_id):
    session, decoded_token, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    error = _active_quiz_or_error(app_ctx, session)
    if error:
        return error
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return app_ctx.jsonify({'error': 'Invalid payload'}), 400
    quiz = session['quiz']
    index = int(quiz.get('currentQuestionIndex', 0))
    try:
        answers = app_ctx.quiz_service.record_answer(quiz.get('answers', []), index, payload.get('selected_option'))
    except ValueError as exc:
        return app_ctx.jsonify({'error': str(exc)}), 400
    total = len(session['question_result'].get('questions', []))
    if index >= total - 1:
        return _complete_quiz(app_ctx, session_id, session, answers, decoded_token)

    def _advance(state):
        state['quiz'] = dict(state.get('quiz') or {}, answers=answers, currentQuestionIndex=index + 1)
        state['updated_at'] = app_ctx.time.time()

    updated = _apply(app_ctx, session_id, _advance)
    if updated is None:
        return _gone(app_ctx)
    return _session_response(
        app_ctx,
        updated,
        completed=False,
        saved_answer=app_ctx.quiz_service.saved_answer(answers, index + 1),
    )


def previous_question(app_ctx, request, session_id):
    session, _decoded, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    error = _active_quiz_or_error(app_ctx, session)
    if error:
        return error
    index = max(0, int(session['quiz'].get('currentQuestionIndex', 0)) - 1)

    def _back(state):
        state['quiz'] = dict(state.get('quiz') or {}, currentQuestionIndex=index)
        state['updated_at'] = app_ctx.time.time()

    updated = _apply(app_ctx, session_id, _back)
    if updated is None:
        return _gone(app_ctx)
    return _session_response(
        app_ctx,
        updated,
        saved_answer=app_ctx.quiz_service.saved_answer(updated['quiz'].get('answers', []), index),
    )


def submit_quiz(app_ctx, request, session_id):
    session, decoded_token, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    error = _active_quiz_or_error(app_ctx, session)
    if error:
        return error
    return _complete_quiz(app_ctx, session_id, session, list(session['quiz'].get('answers', [])), decoded_token)


def back_to_analysis(app_ctx, request, session_id):
    session, _decoded, error = _load_session(app_ctx, request, session_id)
    if error:
        return error

    def _back(state):
        app_ctx.session_state_service.transition(state, app_ctx.session_state_service.VIEW_ANALYSIS, app_ctx.time.time())

    try:
        updated = _apply(app_ctx, session_id, _back)
    except app_ctx.session_state_service.InvalidTransition as exc:
        return _conflict(app_ctx, exc)
    if updated is None:
        return _gone(app_ctx)
    return _session_response(app_ctx, updated)


def reset_session(app_ctx, request, session_id):
    session, _decoded, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    updated = _apply(app_ctx, session_id, lambda state: app_ctx.session_state_service.clear_state(state, app_ctx.time.time()))
    if updated is None:
        return _gone(app_ctx)
    return _session_response(app_ctx, updated)


def delete_session(app_ctx, request, session_id):
    session, _decoded, error = _load_session(app_ctx, request, session_id)
    if error:
        return error
    app_ctx.delete_session(session_id)
    return app_ctx.jsonify({'ok': True})
