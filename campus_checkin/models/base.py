# models/base.py
import uuid
from datetime import datetime

from campus_checkin.extensions import db


def new_id():
    return str(uuid.uuid4())


class BaseModel(db.Model):
    """String UUID primary key plus audit timestamps."""

    __abstract__ = True

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.now, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    def to_dict(self, exclude=()):
        """Column values as JSON-ready data; datetimes become ISO strings."""
        data = {}
        for column in self.__table__.columns:
            if column.name in exclude:
                continue
            value = getattr(self, column.name)
            data[column.name] = value.isoformat() if isinstance(value, datetime) else value
        return data
