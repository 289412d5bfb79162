# services/errors.py
"""
Error taxonomy for registration, ticketing and check-in.
Every error carries a stable error_code that controllers return to clients.
"""


class CheckInError(Exception):
    """Base class for check-in subsystem errors."""

    error_code = 'check_in_error'
    retryable = False

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class MalformedCredential(CheckInError):
    """Scanned text is not a valid ticket credential."""
    error_code = 'malformed_credential'


class RegistrationNotFound(CheckInError):
    """No registration exists for this event and student."""
    error_code = 'not_registered'


class DuplicateRegistration(CheckInError):
    """Student is already registered for this event."""
    error_code = 'duplicate_registration'


class EventNotFound(CheckInError):
    """Event not found."""
    error_code = 'event_not_found'


class RegistrationClosed(CheckInError):
    """Registration for this event is closed."""
    error_code = 'registration_closed'


class Unauthorized(CheckInError):
    """Only club admins or faculty can scan tickets."""
    error_code = 'unauthorized'


class StorageUnavailable(CheckInError):
    """Registration storage is unavailable. Please try again."""
    error_code = 'storage_unavailable'
    retryable = True


class StorageTimeout(StorageUnavailable):
    """Registration storage timed out. Please scan again."""
    error_code = 'storage_timeout'


class ScanFailed(CheckInError):
    """Scan could not be completed. Please scan again."""
    error_code = 'internal_error'
    retryable = True
