"""
Email delivery contract and OTP store
"""
import smtplib
import time

import pytest

from eventyukk.controller import email_service
from eventyukk.controller.email_service import generate_otp, send_email, store_otp, verify_otp
from eventyukk.models.otp_records_model import EmailOTP


class FakeSMTP:
    sent = []
    delay = 0
    error = None

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        pass

    def sendmail(self, sender, to, message):
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        FakeSMTP.sent.append((sender, to, message))


@pytest.fixture
def smtp(monkeypatch):
    monkeypatch.setattr(email_service, 'eventyukk_email', 'noreply@eventyukk.id')
    monkeypatch.setattr(email_service, 'eventyukk_email_password', 'app-password')
    monkeypatch.setattr(email_service.smtplib, 'SMTP', FakeSMTP)
    FakeSMTP.sent = []
    FakeSMTP.delay = 0
    FakeSMTP.error = None
    return FakeSMTP


async def test_missing_recipient_fails():
    result = await send_email('', 'Subject', text='Hello')
    assert result['success'] is False


async def test_unconfigured_smtp_falls_back_to_log():
    result = await send_email('sari@example.com', 'Subject', text='Hello')
    assert result == {'success': True, 'fallback': True}


async def test_send_email_through_smtp(smtp):
    result = await send_email('sari@example.com', 'Token', html='<b>ABCD1234</b>', text='ABCD1234',
                              inline_images={'tokenqr': b'\x89PNG fake'})

    assert result['success'] is True
    assert result['messageId'].endswith('@eventyukk.id>')
    sender, to, message = smtp.sent[0]
    assert (sender, to) == ('noreply@eventyukk.id', 'sari@example.com')
    assert 'Content-ID: <tokenqr>' in message


async def test_smtp_error_is_returned(smtp):
    smtp.error = smtplib.SMTPAuthenticationError(535, b'bad credentials')

    result = await send_email('sari@example.com', 'Token', text='ABCD1234')

    assert result['success'] is False
    assert 'bad credentials' in result['message']


async def test_slow_smtp_times_out(smtp, monkeypatch):
    monkeypatch.setattr(email_service, 'email_timeout_seconds', 0.05)
    smtp.delay = 0.3

    result = await send_email('sari@example.com', 'Token', text='ABCD1234')

    assert result['success'] is False
    assert 'timeout' in result['message']


# ----------------------- OTP -----------------------
def test_generate_otp():
    otp = generate_otp()
    assert len(otp) == 6 and otp.isdigit()


async def test_otp_is_single_use(db, user):
    await store_otp(db, user.id, user.email, '123456')

    assert (await verify_otp(db, user.email, '654321'))['success'] is False
    assert await verify_otp(db, user.email, '123456') == {'success': True, 'userId': user.id}
    assert (await verify_otp(db, user.email, '123456'))['success'] is False


async def test_new_otp_replaces_previous(db, user):
    await store_otp(db, user.id, user.email, '111111')
    await store_otp(db, user.id, user.email, '222222')

    assert db.query(EmailOTP).count() == 1
    assert (await verify_otp(db, user.email, '111111'))['success'] is False
    assert (await verify_otp(db, user.email, '222222'))['success'] is True
