import threading
from functools import wraps

from flask import Flask, Response, jsonify, request, stream_with_context
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.exceptions import HTTPException

# --- Load settings (and .env) first ---
import settings

# --- Import centralized logging configuration ---
from logging_config import get_logger

import classifier
import voice_flow
from calls import initiate_fraud_report_call, initiate_test_call
from errors import ConfigurationError, NotFoundError, ReportStoreError, ServiceError
from identity import create_identity_resolver
from report_store import ReportStore
from telephony import (
    create_request_validator,
    create_twilio_client,
    fetch_account,
    iter_recording,
    open_recording_stream,
)
from utils import find_free_port, playable_recording_url, validate_aadhaar, validate_recording_sid

# --- Create Flask app ---
app = Flask(__name__)
app.config['BASE_URL'] = settings.BASE_URL
app.config['VALIDATE_TWILIO_SIGNATURE'] = settings.VALIDATE_TWILIO_SIGNATURE
app.config['SIMULATE_TRANSCRIPTION'] = settings.SIMULATE_TRANSCRIPTION
app.config['RATELIMIT_ENABLED'] = settings.RATELIMIT_ENABLED

# --- Get logger for this module ---
logger = get_logger(__name__)

# --- RATE LIMITING CONFIGURATION ---
limiter = Limiter(
    app=app,
    key_func=get_remote_address,
    storage_uri="memory://"
)


# --- ERROR HANDLERS ---
@app.errorhandler(429)  # Too Many Requests
def ratelimit_handler(e):
    logger.warning(f"Rate limit exceeded for IP: {get_remote_address()}")
    return jsonify({
        'success': False,
        'error': 'Rate limit exceeded. Please wait a moment before placing another call.'
    }), 429


@app.errorhandler(ServiceError)
def service_error_handler(e):
    if e.status_code >= 500:
        logger.error(f"{type(e).__name__} on {request.path}: {e.message} ({e.details})")
    else:
        logger.info(f"{type(e).__name__} on {request.path}: {e.message}")
    return jsonify(e.to_dict()), e.status_code


@app.errorhandler(Exception)
def unhandled_error_handler(e):
    if isinstance(e, HTTPException):
        return e
    logger.exception(f"Unhandled error on {request.path}")
    return jsonify({'success': False, 'error': 'Internal server error'}), 500


# --- CLIENT SETUP ---
logger.info(f"Fraud report service starting with base URL {app.config['BASE_URL']}")

report_store = ReportStore(settings.REPORTS_DB_FILE)

try:
    twilio_client = create_twilio_client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)
    validator = create_request_validator(settings.TWILIO_AUTH_TOKEN)
    logger.info("Twilio client and request validator initialized successfully.")
except ConfigurationError as e:
    logger.warning(f"Twilio disabled: {e.message}")
    twilio_client = None
    validator = None

try:
    identity_resolver = create_identity_resolver()
except ConfigurationError as e:
    logger.warning(f"Ledger lookup disabled: {e.message}")
    identity_resolver = None


def base_url():
    return app.config['BASE_URL']


def request_payload():
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) and payload else request.form


def validate_twilio_request(f):
    """Reject webhook calls without a valid X-Twilio-Signature when validation is on."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if not app.config.get('VALIDATE_TWILIO_SIGNATURE'):
            return f(*args, **kwargs)

        if validator is None:
            logger.error("Twilio validator not initialized. Rejecting request for security.")
            return "Forbidden", 403

        signature = request.headers.get('X-Twilio-Signature')
        if not signature:
            logger.warning("Missing X-Twilio-Signature header. Rejecting request.")
            return "Forbidden", 403
        try:
            is_valid = validator.validate(request.url, request.form, signature)
        except Exception:
            logger.exception("Error validating Twilio signature")
            return "Forbidden", 403
        if not is_valid:
            logger.warning(f"Invalid Twilio signature from IP: {request.remote_addr}")
            return "Forbidden", 403
        return f(*args, **kwargs)
    return decorated


def twiml(response):
    return Response(str(response), mimetype='text/xml')


# --- Background Worker Functions ---
def process_recording_in_background(call_sid):
    """Stand-in for the provider transcription callback when simulation is on."""
    logger.info(f"BACKGROUND (TRANSCRIPTION): Simulating transcript for {call_sid}")
    try:
        report = report_store.find_by_call_id(call_sid)
    except ReportStoreError:
        logger.exception("BACKGROUND (TRANSCRIPTION): Could not load report")
        return
    if report is None:
        logger.error(f"BACKGROUND (TRANSCRIPTION): No report for {call_sid}")
        return
    transcript = classifier.sample_transcript(report.language)
    voice_flow.apply_transcription(report_store, call_sid, transcript)
    logger.info(f"BACKGROUND (TRANSCRIPTION): Processing complete for {call_sid}")


# ==============================================================================
# ========================= PROVIDER WEBHOOKS (TwiML) ==========================
# ==============================================================================

@app.route('/api/voice', methods=['POST'])
@validate_twilio_request
def voice():
    logger.info(f"Incoming call received: {request.form.get('CallSid')}")
    return twiml(voice_flow.welcome_response(base_url()))


@app.route('/api/language', methods=['POST'])
@validate_twilio_request
def language():
    form_data = request.form
    response = voice_flow.handle_language_selection(
        report_store, form_data.get('CallSid'), form_data.get('Digits'), base_url()
    )
    return twiml(response)


@app.route('/api/recording-complete', methods=['POST'])
@validate_twilio_request
def recording_complete():
    form_data = request.form
    call_sid = form_data.get('CallSid')
    recording_url = form_data.get('RecordingUrl')
    logger.info(f"Recording complete for {call_sid}: {recording_url}")

    response = voice_flow.handle_recording_complete(report_store, call_sid, recording_url)

    if app.config.get('SIMULATE_TRANSCRIPTION') and call_sid and recording_url:
        thread = threading.Thread(target=process_recording_in_background, args=(call_sid,),
                                  daemon=True)
        thread.start()
    return twiml(response)


@app.route('/api/transcription-callback', methods=['POST'])
@validate_twilio_request
def transcription_callback():
    form_data = request.form
    logger.info(f"Transcription received for {form_data.get('CallSid')}")
    voice_flow.apply_transcription(
        report_store, form_data.get('CallSid'), form_data.get('TranscriptionText')
    )
    return "OK", 200


@app.route('/api/recording-status', methods=['POST'])
@validate_twilio_request
def recording_status():
    form_data = request.form
    voice_flow.handle_recording_status(
        report_store, form_data.get('CallSid'), form_data.get('RecordingStatus')
    )
    return "OK", 200


@app.route('/api/call-status', methods=['POST'])
@validate_twilio_request
def call_status():
    form_data = request.form
    voice_flow.handle_call_status(report_store, form_data.get('CallSid'), form_data.get('CallStatus'))
    return "OK", 200


# ==============================================================================
# ========================== MANAGEMENT API (JSON) =============================
# ==============================================================================

@app.route('/', methods=['GET'])
def index():
    return jsonify({
        'message': 'Ration Distribution Fraud Reporting API',
        'status': 'online'
    })


@app.route('/api/make-test-call', methods=['POST'])
@limiter.limit(settings.OUTBOUND_CALL_RATE_LIMIT)
def make_test_call():
    payload = request_payload()
    report = initiate_test_call(
        twilio_client, report_store, payload.get('phoneNumber'), base_url(),
        from_number=settings.TWILIO_PHONE_NUMBER,
    )
    return jsonify({
        'success': True,
        'message': 'Test call initiated',
        'callSid': report.call_sid
    })


@app.route('/api/report-fraud', methods=['POST'])
@limiter.limit(settings.OUTBOUND_CALL_RATE_LIMIT)
def report_fraud():
    payload = request_payload()
    aadhaar = validate_aadhaar(payload.get('aadhaar'))
    if identity_resolver is None:
        raise ConfigurationError('Blockchain provider not initialized')

    report = initiate_fraud_report_call(
        twilio_client, report_store, identity_resolver, aadhaar, base_url(),
        from_number=settings.TWILIO_PHONE_NUMBER,
    )
    return jsonify({
        'success': True,
        'message': 'Call initiated successfully',
        'callSid': report.call_sid,
        'consumerName': report.name,
        'reportId': report.id
    })


@app.route('/api/reports', methods=['GET'])
def list_reports():
    reports = []
    for report in report_store.list_all():
        report_data = report.to_dict()
        playable_url = playable_recording_url(base_url(), report.recording_url)
        if playable_url:
            report_data['playableRecordingUrl'] = playable_url
        reports.append(report_data)
    return jsonify({'success': True, 'reports': reports})


@app.route('/api/recording/<recording_sid>', methods=['GET'])
def stream_recording(recording_sid):
    validate_recording_sid(recording_sid)
    try:
        upstream = open_recording_stream(
            settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN, recording_sid,
            range_header=request.headers.get('Range'),
        )
    except ServiceError:
        return "Error fetching recording", 500

    headers = {
        'Cache-Control': 'public, max-age=86400',
        'Access-Control-Allow-Origin': '*',
        'Accept-Ranges': 'bytes',
    }
    for name in ('Content-Length', 'Content-Range'):
        if upstream.headers.get(name):
            headers[name] = upstream.headers[name]

    return Response(
        stream_with_context(iter_recording(upstream)),
        status=upstream.status_code,
        mimetype='audio/mpeg',
        headers=headers,
    )


@app.route('/api/recording-details/<recording_sid>', methods=['GET'])
def recording_details(recording_sid):
    validate_recording_sid(recording_sid)
    report = report_store.find_by_recording_fragment(recording_sid)
    if report is None:
        raise NotFoundError('Recording not found')
    return jsonify({
        'success': True,
        'transcript': report.transcript,
        'fraudSummary': report.fraud_summary,
        'fraudSeverity': report.fraud_severity.value,
        'language': report.language.value
    })


@app.route('/api/debug', methods=['GET'])
def debug():
    account_sid = settings.TWILIO_ACCOUNT_SID
    return jsonify({
        'baseUrl': base_url(),
        'twilioAccountSid': f"{account_sid[:4]}..." if account_sid else 'not set',
        'twilioAuthToken': 'is set (hidden)' if settings.TWILIO_AUTH_TOKEN else 'not set',
        'twilioPhone': settings.TWILIO_PHONE_NUMBER or 'not set',
        'ledgerConfigured': identity_resolver is not None,
        'geminiApiKey': 'is set (hidden)' if settings.GEMINI_API_KEY else 'not set',
        'signatureValidation': bool(app.config.get('VALIDATE_TWILIO_SIGNATURE')),
        'simulatedTranscription': bool(app.config.get('SIMULATE_TRANSCRIPTION'))
    })


@app.route('/api/test-twilio', methods=['GET'])
def test_twilio():
    account = fetch_account(twilio_client, settings.TWILIO_ACCOUNT_SID)
    return jsonify({'success': True, **account})


if __name__ == '__main__':
    port = find_free_port(settings.PORT)
    logger.info(f"Server running on port {port}")
    logger.info(f"Point the Twilio number's voice webhook at {base_url()}/api/voice")
    app.run(host='0.0.0.0', port=port)
