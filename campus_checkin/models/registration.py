# models/registration.py
from campus_checkin.extensions import db
from sqlalchemy import Index, UniqueConstraint
from .base import BaseModel


class RegistrationStatus:
    """Registration lifecycle: registered -> attended, never back."""
    REGISTERED = 'registered'
    ATTENDED = 'attended'


class EventRegistration(BaseModel):
    __tablename__ = 'event_registrations'

    event_id = db.Column(db.String(36), db.ForeignKey('events.id'), nullable=False)
    student_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=RegistrationStatus.REGISTERED)
    attended_at = db.Column(db.DateTime)
    checked_in_by = db.Column(db.String(36), db.ForeignKey('profiles.id'))

    # Relationships
    event = db.relationship('Event', back_populates='registrations')
    student = db.relationship('Profile', foreign_keys=[student_id], back_populates='registrations')
    operator = db.relationship('Profile', foreign_keys=[checked_in_by])

    __table_args__ = (
        # A student holds at most one registration per event
        UniqueConstraint('event_id', 'student_id', name='uq_registration_event_student'),
        Index('idx_registration_event_status', 'event_id', 'status'),
        Index('idx_registration_student', 'student_id'),
    )

    @property
    def is_attended(self):
        return self.status == RegistrationStatus.ATTENDED

    def __repr__(self):
        return f'<EventRegistration {self.event_id}/{self.student_id} {self.status}>'
