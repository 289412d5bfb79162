# services/scanner_state.py
"""
Server-side storage for one operator's scanner loop.

Values are read once per request and cached; writes go straight to the
scanner_sessions row. Leaving SCANNING is a conditional update, so of two
requests racing on the same row only one is let through to verification.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError

from campus_checkin.extensions import db
from campus_checkin.models.scanner_session import ScannerSession, ScanState
from campus_checkin.services.registration_ledger import storage_guard

logger = logging.getLogger('scan_session')

_FIELDS = ('state', 'result', 'recent_scans')


class ScannerStateStore:
    """State of the scanner_sessions row for (operator_id, session_key)."""

    def __init__(self, operator_id, session_key):
        self.operator_id = operator_id
        self.session_key = session_key
        self._id = None
        self._values = {}

    @property
    def state(self):
        return self._load()['state']

    @property
    def result(self):
        return self._load()['result']

    @property
    def recent_scans(self):
        return list(self._load()['recent_scans'] or [])

    def begin_scan(self):
        """
        Move SCANNING -> SHOWING_RESULT.

        Returns:
            bool: True if this call made the move; False if the row was not
            SCANNING (a result is showing, scanning is halted, or another
            request got there first)
        """
        self._load()
        with storage_guard('begin_scan'):
            rows = (
                db.session.query(ScannerSession)
                .filter(ScannerSession.id == self._id, ScannerSession.state == ScanState.SCANNING)
                .update({
                    ScannerSession.state: ScanState.SHOWING_RESULT,
                    ScannerSession.result: None,
                    ScannerSession.updated_at: datetime.now()
                }, synchronize_session=False)
            )
            db.session.commit()

        if rows == 1:
            self._values.update(state=ScanState.SHOWING_RESULT, result=None)
            return True

        # Someone else moved the row; show what they left
        self._values.clear()
        self._id = None
        return False

    def save(self, **values):
        """
        Persist any of state, result and recent_scans.

        The cached values are updated first so the caller can still report
        what it meant to store if the write fails.
        """
        unknown = set(values) - set(_FIELDS)
        if unknown:
            raise ValueError(f"Unknown scanner fields: {', '.join(sorted(unknown))}")

        self._values.update(values)
        self._load()
        columns = {getattr(ScannerSession, name): value for name, value in values.items()}
        columns[ScannerSession.updated_at] = datetime.now()

        with storage_guard('save_scanner_state'):
            db.session.query(ScannerSession).filter(ScannerSession.id == self._id).update(
                columns, synchronize_session=False
            )
            db.session.commit()

    def _load(self):
        if self._id is not None:
            return self._values

        pending = dict(self._values)
        with storage_guard('load_scanner_state'):
            row = self._fetch()
            if row is None:
                row = ScannerSession(
                    operator_id=self.operator_id,
                    session_key=self.session_key,
                    state=ScanState.SCANNING,
                    recent_scans=[]
                )
                db.session.add(row)
                try:
                    db.session.commit()
                    logger.info(f"Opened scanner session for operator {self.operator_id}")
                except IntegrityError:
                    # Concurrent first request for this session created it
                    db.session.rollback()
                    row = self._fetch()

            self._id = row.id
            self._values = {name: getattr(row, name) for name in _FIELDS}

        # Values set by a save() whose load failed still win in this request
        self._values.update(pending)
        return self._values

    def _fetch(self):
        return (
            db.session.query(ScannerSession)
            .filter_by(operator_id=self.operator_id, session_key=self.session_key)
            .populate_existing()
            .one_or_none()
        )


def prune_scanner_sessions(older_than_days=7):
    """Delete scanner sessions untouched for the given number of days."""
    cutoff = datetime.now() - timedelta(days=older_than_days)
    with storage_guard('prune_scanner_sessions'):
        deleted = (
            db.session.query(ScannerSession)
            .filter(ScannerSession.updated_at < cutoff)
            .delete(synchronize_session=False)
        )
        db.session.commit()

    logger.info(f"Pruned {deleted} scanner sessions older than {older_than_days} days")
    return deleted
