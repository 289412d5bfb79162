# models/event.py
from campus_checkin.extensions import db
from sqlalchemy import Index
from .base import BaseModel


class EventStatus:
    OPEN = 'open'
    CLOSED = 'closed'


class Event(BaseModel):
    __tablename__ = 'events'

    title = db.Column(db.String(200), nullable=False)
    venue = db.Column(db.String(200))
    starts_at = db.Column(db.DateTime)
    category = db.Column(db.String(50))
    status = db.Column(db.String(20), nullable=False, default=EventStatus.OPEN)

    registrations = db.relationship('EventRegistration', back_populates='event', lazy='dynamic')

    __table_args__ = (
        Index('idx_event_starts_at', 'starts_at'),
        Index('idx_event_status', 'status'),
    )

    @property
    def is_closed(self):
        return self.status == EventStatus.CLOSED

    def __repr__(self):
        return f'<Event {self.title}>'
