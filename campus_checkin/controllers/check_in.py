# controllers/check_in.py
"""
Check-in routes for QR ticket scanning at the venue door.
Each operator drives a scan loop: scan -> verdict shown -> reset.
"""

import logging
import uuid

from flask import Blueprint, render_template, request, jsonify, current_app, session as flask_session
from flask_login import current_user, login_required

from campus_checkin.services.scan_session import ScanSessionController, ScanState
from campus_checkin.services.scanner_state import ScannerStateStore
from campus_checkin.utils.auth import scanner_required

# Initialize blueprint
check_in_bp = Blueprint('check_in', __name__)

logger = logging.getLogger('check_in')


def _scanner_session_key():
    """Per-browser key for this operator's scanner row; the state itself stays server-side."""
    key = flask_session.get('scanner_session_key')
    if not key:
        key = uuid.uuid4().hex
        flask_session['scanner_session_key'] = key
    return key


def _controller():
    return ScanSessionController(
        ScannerStateStore(current_user.id, _scanner_session_key()),
        current_user,
        history_limit=current_app.config.get('RECENT_SCANS_LIMIT', 10)
    )


@check_in_bp.route('/')
@login_required
def scanner():
    """Scanner surface, or an access-denied page for students."""
    controller = _controller()

    if not controller.can_operate:
        logger.warning(f"Student {current_user.id} tried to open the scanner")
        return render_template('check_in/access_denied.html'), 403

    logger.info(f"Scanner page loaded for operator {current_user.id} in state {controller.state}")
    return render_template('check_in/scanner.html', **controller.snapshot())


@check_in_bp.route('/scan', methods=['POST'])
@scanner_required
def scan():
    """
    Handle one decode event from the operator's camera.
    Accepts {"text": "..."} (or the legacy "qr_data" key).
    """
    data = request.get_json(silent=True) or {}
    raw_text = data.get('text', data.get('qr_data'))

    if raw_text is None:
        return jsonify({
            'success': False,
            'message': 'No scan data provided',
            'error_code': 'missing_data'
        }), 400

    result = _controller().handle_decode(raw_text)

    if result['state'] == ScanState.HALTED and not result['suppressed']:
        return jsonify(result), 503

    return jsonify(result)


@check_in_bp.route('/reset', methods=['POST'])
@scanner_required
def reset():
    """Return the scanner to SCANNING (\"Scan Next\")."""
    result = _controller().reset()

    if result['state'] == ScanState.HALTED:
        return jsonify(result), 503

    return jsonify(result)


@check_in_bp.route('/state')
@scanner_required
def state():
    """Current scanner state for polling clients."""
    return jsonify(_controller().snapshot())


@check_in_bp.route('/clear-history', methods=['POST'])
@scanner_required
def clear_scan_history():
    """Clear this scanner's recent scan history."""
    _controller().clear_history()
    logger.info("Scan history cleared")
    return jsonify({'success': True, 'message': 'Scan history cleared'})
