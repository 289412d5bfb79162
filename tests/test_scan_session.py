"""
Tests for the scanner loop controller
"""
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import DBAPIError

from campus_checkin.models import RoleType
from campus_checkin.services.check_in_service import ScanVerdict, VerdictStatus
from campus_checkin.services.errors import StorageTimeout, StorageUnavailable
from campus_checkin.services.scan_session import ScanSessionController, ScanState

OPERATOR = SimpleNamespace(id='A1', role=RoleType.CLUB_ADMIN, full_name='Club Lead One')
STUDENT = SimpleNamespace(id='S1', role=RoleType.STUDENT, full_name='Asha Verma')


class MemoryScannerState:
    """In-memory stand-in for ScannerStateStore"""

    def __init__(self, state=ScanState.SCANNING, result=None, recent_scans=None):
        self.values = {'state': state, 'result': result, 'recent_scans': list(recent_scans or [])}
        self.unreachable = False

    def _check(self):
        if self.unreachable:
            raise StorageUnavailable()

    @property
    def state(self):
        self._check()
        return self.values['state']

    @property
    def result(self):
        self._check()
        return self.values['result']

    @property
    def recent_scans(self):
        self._check()
        return list(self.values['recent_scans'])

    def begin_scan(self):
        self._check()
        if self.values['state'] != ScanState.SCANNING:
            return False
        self.values.update(state=ScanState.SHOWING_RESULT, result=None)
        return True

    def save(self, **values):
        self._check()
        self.values.update(values)


def accepted():
    return ScanVerdict(
        VerdictStatus.ACCEPTED,
        attendee={'id': 'S1', 'full_name': 'Asha Verma', 'college_code': 'CS-2041'},
        event={'id': 'E1', 'title': 'Hack Night'},
        registration_id='R1'
    )


def healthy():
    return True, 'Database connection is healthy'


def unreachable():
    return False, 'Database connection failed: connection refused'


@pytest.fixture
def verifier():
    verifier = MagicMock()
    verifier.verify.return_value = accepted()
    return verifier


def make_controller(verifier, operator=OPERATOR, store=None, connectivity_check=healthy, history_limit=10):
    return ScanSessionController(
        MemoryScannerState() if store is None else store,
        operator,
        verifier=verifier,
        connectivity_check=connectivity_check,
        history_limit=history_limit
    )


class TestScanLoop:

    def test_starts_scanning(self, verifier):
        assert make_controller(verifier).state == ScanState.SCANNING

    def test_decode_shows_result(self, verifier):
        controller = make_controller(verifier)

        result = controller.handle_decode('ticket')

        assert result['suppressed'] is False
        assert result['state'] == ScanState.SHOWING_RESULT
        assert result['result']['status'] == VerdictStatus.ACCEPTED
        assert result['result']['ui_status'] == 'success'
        verifier.verify.assert_called_once_with('ticket', RoleType.CLUB_ADMIN, operator_id='A1')

    def test_ticket_left_in_frame_is_verified_once(self, verifier):
        controller = make_controller(verifier)

        controller.handle_decode('ticket')
        repeats = [controller.handle_decode('ticket') for _ in range(3)]

        assert all(r['suppressed'] for r in repeats)
        assert verifier.verify.call_count == 1

    def test_state_leaves_scanning_before_verification(self, verifier):
        store = MemoryScannerState()
        seen = []
        verifier.verify.side_effect = lambda *args, **kwargs: seen.append(store.state) or accepted()

        make_controller(verifier, store=store).handle_decode('ticket')

        assert seen == [ScanState.SHOWING_RESULT]

    def test_store_that_refuses_to_leave_scanning_suppresses(self, verifier):
        store = MemoryScannerState()
        store.begin_scan = lambda: False

        result = make_controller(verifier, store=store).handle_decode('ticket')

        assert result['suppressed'] is True
        verifier.verify.assert_not_called()

    def test_reset_resumes_scanning(self, verifier):
        controller = make_controller(verifier)
        controller.handle_decode('ticket')

        snapshot = controller.reset()

        assert snapshot['state'] == ScanState.SCANNING
        assert snapshot['result'] is None
        controller.handle_decode('next-ticket')
        assert verifier.verify.call_count == 2

    def test_state_survives_a_new_controller_on_the_same_store(self, verifier):
        store = MemoryScannerState()
        make_controller(verifier, store=store).handle_decode('ticket')

        result = make_controller(verifier, store=store).handle_decode('ticket')

        assert result['suppressed'] is True

    def test_rejection_verdicts_display_as_errors(self, verifier):
        verifier.verify.return_value = ScanVerdict(VerdictStatus.MALFORMED)

        result = make_controller(verifier).handle_decode('not-json')

        assert result['result']['status'] == VerdictStatus.MALFORMED
        assert result['result']['ui_status'] == 'error'

    def test_recent_scans_are_bounded(self, verifier):
        controller = make_controller(verifier, history_limit=3)

        for _ in range(5):
            controller.handle_decode('ticket')
            controller.reset()

        assert len(controller.recent_scans) == 3
        assert controller.recent_scans[0]['name'] == 'Asha Verma'
        assert controller.recent_scans[0]['event'] == 'Hack Night'

        controller.clear_history()
        assert controller.recent_scans == []


class TestUnexpectedFailures:

    @pytest.mark.parametrize('error', [
        RuntimeError('boom'),
        DBAPIError('SELECT', {}, Exception('syntax error'), connection_invalidated=False),
    ])
    def test_unexpected_error_still_shows_a_result(self, verifier, error):
        verifier.verify.side_effect = error
        controller = make_controller(verifier)

        result = controller.handle_decode('ticket')

        assert result['suppressed'] is False
        assert result['state'] == ScanState.SHOWING_RESULT
        assert result['result']['error_code'] == 'internal_error'
        assert result['result']['retryable'] is True
        assert controller.snapshot()['result']['error_code'] == 'internal_error'

    def test_scanner_recovers_after_unexpected_error(self, verifier):
        verifier.verify.side_effect = [RuntimeError('boom'), accepted()]
        controller = make_controller(verifier)
        controller.handle_decode('ticket')

        assert controller.reset()['state'] == ScanState.SCANNING
        assert controller.handle_decode('ticket')['result']['status'] == VerdictStatus.ACCEPTED


class TestRoleGate:

    def test_student_gets_access_denied(self, verifier):
        controller = make_controller(verifier, operator=STUDENT)

        result = controller.handle_decode('ticket')

        assert controller.can_operate is False
        assert result['state'] == ScanState.ACCESS_DENIED
        assert result['result']['error_code'] == 'unauthorized'
        verifier.verify.assert_not_called()

    def test_student_snapshot_leaks_nothing(self, verifier):
        store = MemoryScannerState(result={'status': 'ACCEPTED'}, recent_scans=[{'name': 'Someone'}])

        snapshot = make_controller(verifier, operator=STUDENT, store=store).snapshot()

        assert snapshot == {'state': ScanState.ACCESS_DENIED, 'result': None, 'recent_scans': []}

    def test_missing_operator_is_denied(self, verifier):
        assert make_controller(verifier, operator=None).state == ScanState.ACCESS_DENIED


class TestStorageFailures:

    def test_timeout_is_retryable_and_not_already_used(self, verifier):
        verifier.verify.side_effect = StorageTimeout()
        controller = make_controller(verifier)

        result = controller.handle_decode('ticket')

        assert result['state'] == ScanState.SHOWING_RESULT
        assert result['result']['error_code'] == 'storage_timeout'
        assert result['result']['retryable'] is True
        assert result['result']['status'] != VerdictStatus.ALREADY_USED
        assert controller.reset()['state'] == ScanState.SCANNING

    def test_transient_failure_keeps_scanner_usable(self, verifier):
        verifier.verify.side_effect = StorageUnavailable()

        result = make_controller(verifier).handle_decode('ticket')

        assert result['state'] == ScanState.SHOWING_RESULT
        assert result['result']['error_code'] == 'storage_unavailable'

    def test_connectivity_loss_halts_scanning(self, verifier):
        verifier.verify.side_effect = StorageUnavailable()
        controller = make_controller(verifier, connectivity_check=unreachable)

        result = controller.handle_decode('ticket')

        assert result['state'] == ScanState.HALTED
        assert 'halted' in result['result']['message']
        assert controller.handle_decode('ticket')['suppressed'] is True
        assert controller.reset()['state'] == ScanState.HALTED
        assert verifier.verify.call_count == 1

    def test_halted_scanner_resumes_once_storage_answers(self, verifier):
        verifier.verify.side_effect = StorageUnavailable()
        store = MemoryScannerState()
        make_controller(verifier, store=store, connectivity_check=unreachable).handle_decode('ticket')

        snapshot = make_controller(verifier, store=store, connectivity_check=healthy).reset()

        assert snapshot['state'] == ScanState.SCANNING

    def test_unreadable_scanner_state_reports_halted(self, verifier):
        store = MemoryScannerState()
        store.unreachable = True
        controller = make_controller(verifier, store=store, connectivity_check=unreachable)

        result = controller.handle_decode('ticket')

        assert result['state'] == ScanState.HALTED
        assert controller.snapshot()['state'] == ScanState.HALTED
        assert controller.reset()['state'] == ScanState.HALTED
        verifier.verify.assert_not_called()

        store.unreachable = False
        assert make_controller(verifier, store=store).reset()['state'] == ScanState.SCANNING
