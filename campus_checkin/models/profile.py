# models/profile.py
from flask_login import UserMixin
from sqlalchemy import Index

from campus_checkin.extensions import db
from .base import BaseModel


class RoleType:
    """Define role types as constants."""
    STUDENT = 'student'
    CLUB_ADMIN = 'club_admin'
    COLLEGE_ADMIN = 'college_admin'

    ALL = (STUDENT, CLUB_ADMIN, COLLEGE_ADMIN)


class Profile(UserMixin, BaseModel):
    """
    Campus member profile.

    Rows are provisioned by the external identity service; this subsystem only
    reads them to resolve the current user and to display attendee identity.
    """

    __tablename__ = 'profiles'

    full_name = db.Column(db.String(150), nullable=False)
    college_code = db.Column(db.String(50))
    role = db.Column(db.String(20), nullable=False, default=RoleType.STUDENT)

    registrations = db.relationship(
        'EventRegistration',
        foreign_keys='EventRegistration.student_id',
        back_populates='student',
        lazy='dynamic'
    )

    __table_args__ = (
        Index('idx_profile_role', 'role'),
    )

    def __repr__(self):
        return f'<Profile {self.full_name} ({self.role})>'
