"""
Campus check-in - Test Configuration and Fixtures
"""
import os
from datetime import datetime
from types import SimpleNamespace

import pytest

# Set testing environment
os.environ['FLASK_ENV'] = 'testing'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'

from campus_checkin import create_app
from campus_checkin.extensions import db
from campus_checkin.models import Event, EventStatus, Profile, RoleType


@pytest.fixture
def app():
    """Application bound to a fresh in-memory database"""
    app = create_app('testing')

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def cli_runner(app):
    return app.test_cli_runner()


@pytest.fixture
def campus(app):
    """Seed profiles and events; returns their IDs"""
    db.session.add_all([
        Profile(id='S1', full_name='Asha Verma', college_code='CS-2041', role=RoleType.STUDENT),
        Profile(id='S2', full_name='Rohan Iyer', college_code='ME-1187', role=RoleType.STUDENT),
        Profile(id='A1', full_name='Club Lead One', role=RoleType.CLUB_ADMIN),
        Profile(id='A2', full_name='Club Lead Two', role=RoleType.CLUB_ADMIN),
        Profile(id='F1', full_name='Dean of Students', role=RoleType.COLLEGE_ADMIN),
        Event(id='E1', title='Hack Night', venue='Main Auditorium',
              starts_at=datetime(2026, 11, 6, 18, 30), category='Tech', status=EventStatus.OPEN),
        Event(id='E2', title='Alumni Meetup', venue='Block C',
              starts_at=datetime(2026, 10, 1, 17, 0), category='Career', status=EventStatus.CLOSED),
    ])
    db.session.commit()

    return SimpleNamespace(
        student='S1', other_student='S2',
        club_admin='A1', other_club_admin='A2', college_admin='F1',
        event='E1', closed_event='E2'
    )


def login(client, profile_id):
    """Attach a Flask-Login session for the given profile"""
    with client.session_transaction() as sess:
        sess['_user_id'] = profile_id
        sess['_fresh'] = True


@pytest.fixture
def login_as(client):
    def _login(profile_id):
        login(client, profile_id)
        return client
    return _login
