# services/scan_session.py
"""
Scan session controller for a single operator's scanner.

Drives the scan -> verify -> show result -> reset loop. The controller only owns
presentation state; attendance itself is decided by CheckInVerifier. State is
read from and written to a store (ScannerStateStore in the web app), which
decides atomically whether a decode event may leave SCANNING.
"""

import logging
from datetime import datetime

from campus_checkin.extensions import check_database_health
from campus_checkin.models.scanner_session import ScanState
from campus_checkin.services.check_in_service import CheckInVerifier
from campus_checkin.services.errors import ScanFailed, StorageTimeout, StorageUnavailable, Unauthorized
from campus_checkin.utils.auth import can_scan

logger = logging.getLogger('scan_session')

HALTED_MESSAGE = 'Lost connection to registration storage. Scanning halted.'

__all__ = ['ScanSessionController', 'ScanState']


class ScanSessionController:
    """Scanner loop for one operator session."""

    def __init__(self, store, operator, verifier=None, connectivity_check=None, history_limit=10):
        """
        Args:
            store: Scanner state store (state, result, recent_scans, begin_scan(), save())
            operator: Current profile (needs id, role and full_name)
            verifier: CheckInVerifier instance
            connectivity_check: Callable returning (healthy, message)
            history_limit: Number of recent scans to keep for display
        """
        self.store = store
        self.operator = operator
        self.verifier = verifier or CheckInVerifier()
        self.connectivity_check = connectivity_check or check_database_health
        self.history_limit = history_limit

    @property
    def can_operate(self):
        return self.operator is not None and can_scan(self.operator.role)

    @property
    def state(self):
        return self.snapshot()['state']

    @property
    def recent_scans(self):
        return self.snapshot()['recent_scans']

    def snapshot(self):
        """Current display state for the scanner surface."""
        if not self.can_operate:
            return {'state': ScanState.ACCESS_DENIED, 'result': None, 'recent_scans': []}

        try:
            return {
                'state': self.store.state,
                'result': self.store.result,
                'recent_scans': self.store.recent_scans
            }
        except StorageUnavailable as e:
            logger.error(f"Scanner state unreadable for operator {self.operator.id}: {e.message}")
            return self._halted(e)

    def handle_decode(self, raw_text):
        """
        Handle one decode event from the camera.

        Only an event that moves the store out of SCANNING reaches the verifier.
        Events arriving while a result is shown, while halted, or while another
        request holds the scanner are suppressed.

        Returns:
            dict: Display state plus 'suppressed' flag
        """
        if not self.can_operate:
            logger.warning(f"Scanner access denied for operator {getattr(self.operator, 'id', None)}")
            return dict(self.snapshot(), suppressed=True, result=self._error_result(Unauthorized()))

        try:
            started = self.store.begin_scan()
        except StorageUnavailable as e:
            return dict(self._storage_failure(e, recorded=False), suppressed=False)

        if not started:
            logger.debug(f"Decode event suppressed for operator {self.operator.id}")
            return dict(self.snapshot(), suppressed=True)

        state = ScanState.SHOWING_RESULT
        try:
            verdict = self.verifier.verify(raw_text, self.operator.role, operator_id=self.operator.id)
            result = verdict.to_dict()
            result['ui_status'] = 'success' if verdict.accepted else 'error'

        except Unauthorized as e:
            result = self._error_result(e)

        except StorageTimeout as e:
            logger.warning(f"Scan timed out for operator {self.operator.id}")
            result = self._error_result(e)

        except StorageUnavailable as e:
            return dict(self._storage_failure(e, recorded=True), suppressed=False)

        except Exception as e:
            # The operator still gets a result and a way back to SCANNING
            logger.error(f"Scan failed for operator {self.operator.id}: {e}", exc_info=True)
            result = self._error_result(ScanFailed())

        self._save(state=state, result=result, recent_scans=self._with_scan(result))
        return dict(self.snapshot(), suppressed=False)

    def reset(self):
        """
        Operator-initiated reset back to SCANNING.

        A halted scanner only resumes once storage answers again.
        """
        if not self.can_operate:
            return self.snapshot()

        current = self.snapshot()
        if current['state'] == ScanState.HALTED:
            healthy, message = self.connectivity_check()
            if not healthy:
                logger.warning(f"Scanner reset refused, storage still unreachable: {message}")
                return current
            logger.info(f"Storage reachable again, scanner resumed for operator {self.operator.id}")

        self._save(state=ScanState.SCANNING, result=None)
        return self.snapshot()

    def clear_history(self):
        self._save(recent_scans=[])

    # Private Helper Methods

    def _storage_failure(self, error, recorded):
        """
        Display state after a storage error.

        A failed probe means connectivity is gone and the scanner halts;
        otherwise the error is shown as a retryable result.
        """
        healthy, message = self.connectivity_check()
        if healthy:
            result = self._error_result(error)
            if recorded:
                self._save(state=ScanState.SHOWING_RESULT, result=result,
                           recent_scans=self._with_scan(result))
                return self.snapshot()
            return {'state': ScanState.SHOWING_RESULT, 'result': result, 'recent_scans': []}

        logger.error(f"Scanner halted, storage unreachable: {message}")
        halted = self._halted(error)
        self._save(state=ScanState.HALTED, result=halted['result'])
        return halted

    def _halted(self, error):
        return {
            'state': ScanState.HALTED,
            'result': self._error_result(error, message=HALTED_MESSAGE),
            'recent_scans': []
        }

    def _save(self, **values):
        try:
            self.store.save(**values)
        except StorageUnavailable as e:
            logger.error(f"Could not save scanner state for operator {self.operator.id}: {e.message}")

    @staticmethod
    def _error_result(error, message=None):
        return {
            'status': error.error_code.upper(),
            'success': False,
            'message': message or error.message,
            'error_code': error.error_code,
            'retryable': error.retryable,
            'ui_status': 'error',
            'checked_at': datetime.now().isoformat()
        }

    def _with_scan(self, result):
        attendee = result.get('attendee') or {}
        scan_entry = {
            'timestamp': datetime.now().strftime('%H:%M:%S'),
            'name': attendee.get('full_name', 'Unknown'),
            'event': (result.get('event') or {}).get('title'),
            'status': result['status'],
            'message': result.get('message', '')
        }

        try:
            recent_scans = self.store.recent_scans
        except StorageUnavailable:
            recent_scans = []
        recent_scans.insert(0, scan_entry)
        return recent_scans[:self.history_limit]
