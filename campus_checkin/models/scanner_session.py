# models/scanner_session.py
from campus_checkin.extensions import db
from sqlalchemy import UniqueConstraint
from .base import BaseModel


class ScanState:
    SCANNING = 'SCANNING'
    SHOWING_RESULT = 'SHOWING_RESULT'
    HALTED = 'HALTED'
    ACCESS_DENIED = 'ACCESS_DENIED'


class ScannerSession(BaseModel):
    """
    Scanner loop state for one operator in one browser session.

    Kept server-side so that two requests carrying the same session cookie
    race on this row instead of each trusting its own copy of the state.
    ACCESS_DENIED is never stored; it is derived from the operator's role.
    """

    __tablename__ = 'scanner_sessions'

    operator_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False)
    session_key = db.Column(db.String(64), nullable=False)
    state = db.Column(db.String(20), nullable=False, default=ScanState.SCANNING)
    result = db.Column(db.JSON)
    recent_scans = db.Column(db.JSON, nullable=False, default=list)

    operator = db.relationship('Profile')

    __table_args__ = (
        UniqueConstraint('operator_id', 'session_key', name='uq_scanner_session_operator_key'),
    )

    def __repr__(self):
        return f'<ScannerSession {self.operator_id}/{self.session_key[:8]} {self.state}>'
