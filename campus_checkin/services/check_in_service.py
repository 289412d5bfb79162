# services/check_in_service.py
"""
Check-in verification for event tickets.
Decides what happens when an operator scans a credential at the venue door and
performs the single registered -> attended transition.
"""

import logging
from datetime import datetime

from campus_checkin.services.errors import MalformedCredential, RegistrationNotFound, Unauthorized
from campus_checkin.services.registration_ledger import RegistrationLedger
from campus_checkin.services.ticket_service import TicketEncoder
from campus_checkin.utils.auth import can_scan

logger = logging.getLogger('check_in_service')


class VerdictStatus:
    """Possible outcomes of a single scan."""
    ACCEPTED = 'ACCEPTED'
    ALREADY_USED = 'ALREADY_USED'
    NOT_REGISTERED = 'NOT_REGISTERED'
    MALFORMED = 'MALFORMED'


class ScanVerdict:
    """Result of verifying one scanned credential."""

    MESSAGES = {
        VerdictStatus.ACCEPTED: 'Verified',
        VerdictStatus.ALREADY_USED: 'Already scanned',
        VerdictStatus.NOT_REGISTERED: 'Registration not found! (Student is not registered)',
        VerdictStatus.MALFORMED: 'Invalid QR code format',
    }

    def __init__(self, status, attendee=None, event=None, registration_id=None, message=None):
        self.status = status
        self.attendee = attendee
        self.event = event
        self.registration_id = registration_id
        self.message = message or self.MESSAGES[status]
        self.checked_at = datetime.now()

    @property
    def accepted(self):
        return self.status == VerdictStatus.ACCEPTED

    def to_dict(self):
        return {
            'status': self.status,
            'success': self.accepted,
            'message': self.message,
            'attendee': self.attendee,
            'event': self.event,
            'registration_id': self.registration_id,
            'checked_at': self.checked_at.isoformat()
        }

    def __repr__(self):
        return f'<ScanVerdict {self.status}>'


class CheckInVerifier:
    """
    Verify scanned credentials against the registration ledger.

    Safe to call concurrently from any number of scanners: the ledger's
    conditional update picks a single winner per registration and every other
    caller is told the ticket was already used.
    """

    def __init__(self, ledger=None, encoder=None):
        self.ledger = ledger or RegistrationLedger
        self.encoder = encoder or TicketEncoder

    def verify(self, credential_text, operator_role, operator_id=None):
        """
        Verify a scanned credential and check the attendee in.

        Args:
            credential_text: Raw text read from the QR code
            operator_role: Role of the scanning operator
            operator_id: Profile ID of the scanning operator

        Returns:
            ScanVerdict

        Raises:
            Unauthorized: If operator_role may not scan
            StorageUnavailable: If the ledger could not be reached
        """
        if not can_scan(operator_role):
            logger.warning(f"Scan rejected for role {operator_role!r} (operator {operator_id})")
            raise Unauthorized()

        try:
            ticket = self.encoder.decode(credential_text)
        except MalformedCredential as e:
            logger.info(f"Malformed credential scanned by {operator_id}: {e.message}")
            return ScanVerdict(VerdictStatus.MALFORMED, message=e.message)

        event_id, student_id = ticket['event_id'], ticket['student_id']

        try:
            registration = self.ledger.get_registration(event_id, student_id)
        except RegistrationNotFound:
            logger.info(f"No registration for student {student_id} at event {event_id}")
            return ScanVerdict(VerdictStatus.NOT_REGISTERED)

        attendee = self._format_attendee(registration)
        event = self._format_event(registration)

        if registration.is_attended:
            logger.info(f"Duplicate scan: registration {registration.id} already attended")
            return self._already_used(registration.id, attendee, event)

        if not self.ledger.mark_attended(registration.id, operator_id=operator_id):
            # Another scanner won the conditional update
            logger.info(f"Concurrent scan lost for registration {registration.id}")
            return self._already_used(registration.id, attendee, event)

        logger.info(f"Checked in {attendee['full_name']} to {event['title']} (operator {operator_id})")
        return ScanVerdict(
            VerdictStatus.ACCEPTED,
            attendee=attendee,
            event=event,
            registration_id=registration.id,
            message=f"Verified: {attendee['full_name']}"
        )

    # Private Helper Methods

    @staticmethod
    def _already_used(registration_id, attendee, event):
        return ScanVerdict(
            VerdictStatus.ALREADY_USED,
            attendee=attendee,
            event=event,
            registration_id=registration_id,
            message=f"ALREADY SCANNED: {attendee['full_name']}"
        )

    @staticmethod
    def _format_attendee(registration):
        """Attendee identity comes from the ledger, never from the credential."""
        student = registration.student
        return {
            'id': registration.student_id,
            'full_name': student.full_name if student else 'Unknown',
            'college_code': student.college_code if student else None
        }

    @staticmethod
    def _format_event(registration):
        event = registration.event
        return {
            'id': registration.event_id,
            'title': event.title if event else None
        }
