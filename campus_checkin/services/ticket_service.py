# services/ticket_service.py
"""
Ticket credential encoding for event check-in.
A credential is compact JSON carrying the event and student identifiers plus the
time it was rendered. It is rebuilt every time a ticket is shown and is rendered
as a QR code for the scanner at the door.
"""

import json
import logging
from datetime import datetime, timezone
from io import BytesIO

import qrcode
from flask import current_app, has_app_context

from campus_checkin.services.errors import MalformedCredential

logger = logging.getLogger('ticket_service')

DEFAULT_MAX_CREDENTIAL_LENGTH = 2048


class TicketEncoder:
    """Encode registrations as scannable credentials and parse them back."""

    # Fixed field set, in encoding order
    FIELDS = ('eventId', 'studentId', 'studentName', 'issuedAt')
    REQUIRED_IDENTIFIERS = ('eventId', 'studentId')

    @staticmethod
    def encode(registration, display_name=None, issued_at=None):
        """
        Serialize a registration into credential text.

        Args:
            registration: Object with event_id and student_id attributes
            display_name: Name printed for the operator (not trusted on scan)
            issued_at: Rendering time, defaults to now (UTC)

        Returns:
            str: Compact JSON credential
        """
        issued_at = issued_at or datetime.now(timezone.utc)

        payload = {
            'eventId': str(registration.event_id),
            'studentId': str(registration.student_id),
            'studentName': display_name,
            'issuedAt': issued_at.isoformat()
        }

        logger.debug(f"Encoded ticket for student {payload['studentId']} at event {payload['eventId']}")
        return json.dumps(payload, separators=(',', ':'))

    @staticmethod
    def decode(credential_text):
        """
        Strictly parse credential text.

        Args:
            credential_text: Raw text read by the scanner

        Returns:
            dict: event_id, student_id, student_name, issued_at

        Raises:
            MalformedCredential: On any structural problem
        """
        if isinstance(credential_text, bytes):
            try:
                credential_text = credential_text.decode('utf-8')
            except UnicodeDecodeError as e:
                raise MalformedCredential('Credential is not valid UTF-8') from e

        if not isinstance(credential_text, str) or not credential_text.strip():
            raise MalformedCredential('Credential is empty')

        if len(credential_text) > TicketEncoder._max_length():
            raise MalformedCredential('Credential is too long')

        try:
            data = json.loads(credential_text)
        except ValueError as e:
            raise MalformedCredential('Invalid QR code format') from e

        if not isinstance(data, dict):
            raise MalformedCredential('Invalid QR code format')

        for field in TicketEncoder.REQUIRED_IDENTIFIERS:
            value = data.get(field)
            if not isinstance(value, str) or not value.strip():
                raise MalformedCredential(f'Credential field {field} is missing or invalid')

        student_name = data.get('studentName')
        if student_name is not None and not isinstance(student_name, str):
            raise MalformedCredential('Credential field studentName is invalid')

        issued_at = TicketEncoder._parse_issued_at(data.get('issuedAt'))

        return {
            'event_id': data['eventId'],
            'student_id': data['studentId'],
            'student_name': student_name,
            'issued_at': issued_at
        }

    @staticmethod
    def render_png(credential_text):
        """
        Render credential text as a QR code PNG.

        Returns:
            bytes: PNG image data
        """
        box_size, border = 10, 4
        if has_app_context():
            box_size = current_app.config.get('TICKET_QR_BOX_SIZE', box_size)
            border = current_app.config.get('TICKET_QR_BORDER', border)

        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_H,
            box_size=box_size,
            border=border,
        )
        qr.add_data(credential_text)
        qr.make(fit=True)

        qr_image = qr.make_image(fill_color="black", back_color="white")

        output = BytesIO()
        qr_image.save(output, format='PNG')
        return output.getvalue()

    # Private Helper Methods

    @staticmethod
    def _parse_issued_at(value):
        if not isinstance(value, str) or not value:
            raise MalformedCredential('Credential field issuedAt is missing or invalid')

        # Browsers emit a trailing Z (toISOString)
        if value.endswith('Z'):
            value = value[:-1] + '+00:00'

        try:
            return datetime.fromisoformat(value)
        except ValueError as e:
            raise MalformedCredential('Credential field issuedAt is not an ISO-8601 timestamp') from e

    @staticmethod
    def _max_length():
        if has_app_context():
            return current_app.config.get('MAX_CREDENTIAL_LENGTH', DEFAULT_MAX_CREDENTIAL_LENGTH)
        return DEFAULT_MAX_CREDENTIAL_LENGTH
