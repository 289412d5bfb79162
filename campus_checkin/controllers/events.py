# controllers/events.py
"""
Event registration and ticket routes.
Students register for events and display their QR ticket; staff can read
per-event attendance counts.
"""

import base64
import logging
from io import BytesIO
from flask import Blueprint, render_template, jsonify, send_file
from flask_login import current_user

from campus_checkin.services.errors import (
    DuplicateRegistration, EventNotFound, RegistrationClosed, RegistrationNotFound, StorageUnavailable
)
from campus_checkin.services.registration_ledger import RegistrationLedger
from campus_checkin.services.ticket_service import TicketEncoder
from campus_checkin.utils.auth import login_required_json, scanner_required

events_bp = Blueprint('events', __name__)

logger = logging.getLogger('events')


def _error_response(error, status_code):
    return jsonify({
        'success': False,
        'message': error.message,
        'error_code': error.error_code,
        'retryable': error.retryable
    }), status_code


@events_bp.route('/<event_id>/register', methods=['POST'])
@login_required_json
def register(event_id):
    """Register the current user for an event."""
    try:
        registration = RegistrationLedger.create_registration(event_id, current_user.id)
    except EventNotFound as e:
        return _error_response(e, 404)
    except (DuplicateRegistration, RegistrationClosed) as e:
        return _error_response(e, 409)
    except StorageUnavailable as e:
        return _error_response(e, 503)

    event_title = registration.event.title if registration.event else event_id
    return jsonify({
        'success': True,
        'message': f'You are going to {event_title}.',
        'registration': registration.to_dict()
    }), 201


@events_bp.route('/registrations')
@login_required_json
def my_registrations():
    """List the current user's registrations."""
    try:
        registrations = RegistrationLedger.list_student_registrations(current_user.id)
    except StorageUnavailable as e:
        return _error_response(e, 503)

    return jsonify({
        'success': True,
        'event_ids': [r.event_id for r in registrations],
        'registrations': [r.to_dict() for r in registrations]
    })


@events_bp.route('/<event_id>/ticket')
@login_required_json
def ticket(event_id):
    """Ticket page with a freshly encoded QR credential."""
    try:
        registration = RegistrationLedger.get_registration(event_id, current_user.id)
    except RegistrationNotFound as e:
        return _error_response(e, 404)
    except StorageUnavailable as e:
        return _error_response(e, 503)

    credential = TicketEncoder.encode(registration, display_name=current_user.full_name)
    qr_data_uri = 'data:image/png;base64,' + base64.b64encode(TicketEncoder.render_png(credential)).decode('ascii')

    return render_template(
        'events/ticket.html',
        event=registration.event,
        registration=registration,
        attendee=current_user,
        qr_data_uri=qr_data_uri
    )


@events_bp.route('/<event_id>/ticket.png')
@login_required_json
def ticket_png(event_id):
    """QR code image of the current user's ticket."""
    try:
        registration = RegistrationLedger.get_registration(event_id, current_user.id)
    except RegistrationNotFound as e:
        return _error_response(e, 404)
    except StorageUnavailable as e:
        return _error_response(e, 503)

    credential = TicketEncoder.encode(registration, display_name=current_user.full_name)
    return send_file(BytesIO(TicketEncoder.render_png(credential)), mimetype='image/png')


@events_bp.route('/<event_id>/attendance')
@scanner_required
def attendance(event_id):
    """Registered vs attended counts for an event."""
    try:
        summary = RegistrationLedger.get_attendance_summary(event_id)
    except EventNotFound as e:
        return _error_response(e, 404)
    except StorageUnavailable as e:
        return _error_response(e, 503)

    return jsonify(dict(summary, success=True))
