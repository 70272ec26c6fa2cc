"""
Event Yukk - Test Configuration and Fixtures
"""
import os
from datetime import date, timedelta

import pytest
from faker import Faker
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set testing environment before the app reads its configuration
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['RUN_SWEEP_ON_STARTUP'] = 'false'
os.environ['SMTP_USER'] = ''
os.environ['SMTP_PASS'] = ''
os.environ['MIDTRANS_SERVER_KEY'] = 'SB-Mid-server-test'
os.environ['MIDTRANS_CLIENT_KEY'] = 'SB-Mid-client-test'

from main import app
from eventyukk.database import Base, get_db
from eventyukk.models.event_model import Event
from eventyukk.models.user_model import User

fake = Faker()

# Test database setup
test_engine = create_engine(
    'sqlite://',
    connect_args={'check_same_thread': False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def db():
    """Fresh schema and session for each test"""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db):
    """Test client sharing the test session"""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Capture outgoing token emails instead of sending them"""
    sent = []

    async def fake_send_email(to, subject, html=None, text=None, inline_images=None):
        sent.append({'to': to, 'subject': subject, 'text': text, 'inline_images': inline_images})
        return {'success': True, 'messageId': f'<test-{len(sent)}@eventyukk.test>'}

    monkeypatch.setattr('eventyukk.controller.token_service.send_email', fake_send_email)
    return sent


@pytest.fixture
def make_user(db):
    def _make_user(**overrides):
        data = {
            'full_name': fake.name(),
            'email': fake.unique.email(),
            'phone_number': fake.msisdn(),
            'city': fake.city(),
            'role': 'user',
        }
        data.update(overrides)
        user = User(**data)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def make_event(db):
    def _make_event(**overrides):
        data = {
            'title': fake.catch_phrase(),
            'location': fake.street_address(),
            'city': fake.city(),
            'event_date': date.today() + timedelta(days=10),
            'event_time': '09:00',
            'price': 0.0,
            'is_free': True,
            'has_certificate': True,
            'status': 'published',
            'is_active': True,
        }
        data.update(overrides)
        event = Event(**data)
        db.add(event)
        db.commit()
        db.refresh(event)
        return event
    return _make_event


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role='admin')


@pytest.fixture
def free_event(make_event):
    return make_event()


@pytest.fixture
def paid_event(make_event):
    return make_event(price=150000.0, is_free=False)


@pytest.fixture
def auth_headers(user):
    return {'X-User-Id': str(user.id)}


@pytest.fixture
def admin_headers(admin):
    return {'X-User-Id': str(admin.id)}
