# services/registration_ledger.py
"""
Registration ledger: the source of truth for who registered for which event
and whether they have been checked in.

The only mutation after creation is mark_attended, a conditional update guarded
on the current status. Concurrent check-ins of the same registration are
resolved by the database: exactly one update affects a row.
"""

import logging
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError, DBAPIError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import joinedload

from campus_checkin.extensions import db
from campus_checkin.models.event import Event
from campus_checkin.models.registration import EventRegistration, RegistrationStatus
from campus_checkin.services.errors import (
    DuplicateRegistration, EventNotFound, RegistrationClosed, RegistrationNotFound,
    StorageTimeout, StorageUnavailable
)

logger = logging.getLogger('registration_ledger')

_TIMEOUT_MARKERS = ('timeout', 'timed out', 'database is locked', 'canceling statement')


def _is_timeout(error):
    if isinstance(error, PoolTimeoutError):
        return True
    return any(marker in str(error).lower() for marker in _TIMEOUT_MARKERS)


@contextmanager
def storage_guard(operation):
    """Roll back and translate driver failures into storage errors."""
    try:
        yield
    except (OperationalError, PoolTimeoutError) as e:
        db.session.rollback()
        if _is_timeout(e):
            logger.warning(f"Ledger {operation} timed out: {e}")
            raise StorageTimeout() from e
        logger.error(f"Ledger {operation} failed: {e}")
        raise StorageUnavailable() from e
    except DBAPIError as e:
        db.session.rollback()
        if e.connection_invalidated:
            logger.error(f"Ledger {operation} lost its connection: {e}")
            raise StorageUnavailable() from e
        raise


class RegistrationLedger:
    """Accessor over the event_registrations table."""

    @staticmethod
    def create_registration(event_id, student_id):
        """
        Register a student for an event.

        Args:
            event_id: Event ID
            student_id: Student profile ID

        Returns:
            EventRegistration: The new registration with status 'registered'

        Raises:
            EventNotFound, RegistrationClosed, DuplicateRegistration, StorageUnavailable
        """
        with storage_guard('create_registration'):
            event = db.session.get(Event, event_id)
            if not event:
                raise EventNotFound()
            if event.is_closed:
                raise RegistrationClosed()

            registration = EventRegistration(
                event_id=event_id,
                student_id=student_id,
                status=RegistrationStatus.REGISTERED
            )
            db.session.add(registration)
            try:
                db.session.commit()
            except IntegrityError as e:
                db.session.rollback()
                logger.info(f"Duplicate registration: student {student_id} for event {event_id}")
                raise DuplicateRegistration() from e

        logger.info(f"Registered student {student_id} for event {event_id}")
        return registration

    @staticmethod
    def get_registration(event_id, student_id):
        """
        Point lookup of a registration, loaded with its event and student.

        Raises:
            RegistrationNotFound: If the pair has no registration
        """
        with storage_guard('get_registration'):
            registration = (
                db.session.query(EventRegistration)
                .options(
                    joinedload(EventRegistration.event),
                    joinedload(EventRegistration.student)
                )
                .filter_by(event_id=event_id, student_id=student_id)
                .first()
            )

        if not registration:
            raise RegistrationNotFound()
        return registration

    @staticmethod
    def mark_attended(registration_id, operator_id=None):
        """
        Flip a registration from 'registered' to 'attended'.

        The update only applies while the row is still 'registered', so at most
        one caller ever wins for a given registration.

        Args:
            registration_id: EventRegistration ID
            operator_id: Profile ID of the scanning operator

        Returns:
            bool: True if this call performed the transition
        """
        with storage_guard('mark_attended'):
            rows = (
                db.session.query(EventRegistration)
                .filter(
                    EventRegistration.id == registration_id,
                    EventRegistration.status == RegistrationStatus.REGISTERED
                )
                .update({
                    EventRegistration.status: RegistrationStatus.ATTENDED,
                    EventRegistration.attended_at: datetime.now(),
                    EventRegistration.checked_in_by: operator_id,
                    EventRegistration.updated_at: datetime.now()
                }, synchronize_session=False)
            )
            db.session.commit()

        applied = rows == 1
        if applied:
            logger.info(f"Registration {registration_id} marked attended by {operator_id}")
        else:
            logger.info(f"Registration {registration_id} was already attended")
        return applied

    @staticmethod
    def list_student_registrations(student_id):
        """Return all registrations held by a student, newest first."""
        with storage_guard('list_student_registrations'):
            return (
                db.session.query(EventRegistration)
                .filter_by(student_id=student_id)
                .order_by(EventRegistration.created_at.desc())
                .all()
            )

    @staticmethod
    def get_attendance_summary(event_id):
        """
        Count registrations for an event by status.

        Returns:
            dict: event_id, registered, attended and total counts
        """
        with storage_guard('get_attendance_summary'):
            if not db.session.get(Event, event_id):
                raise EventNotFound()

            rows = (
                db.session.query(EventRegistration.status, func.count(EventRegistration.id))
                .filter_by(event_id=event_id)
                .group_by(EventRegistration.status)
                .all()
            )

        counts = {status: count for status, count in rows}
        registered = counts.get(RegistrationStatus.REGISTERED, 0)
        attended = counts.get(RegistrationStatus.ATTENDED, 0)
        total = registered + attended

        return {
            'event_id': event_id,
            'registered': registered,
            'attended': attended,
            'total': total,
            'attendance_rate': round(attended / total * 100, 1) if total else 0
        }
