# models/__init__.py
from .base import BaseModel
from .profile import Profile, RoleType
from .event import Event, EventStatus
from .registration import EventRegistration, RegistrationStatus
from .scanner_session import ScannerSession, ScanState

__all__ = [
    'BaseModel',
    'Profile',
    'RoleType',
    'Event',
    'EventStatus',
    'EventRegistration',
    'RegistrationStatus',
    'ScannerSession',
    'ScanState'
]
