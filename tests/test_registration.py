"""
Registration writer: free/paid branching, gatekeeping and the two-table write
"""
import re
from datetime import datetime, time, timedelta

import pytest

from eventyukk.controller import registration_controller
from eventyukk.controller.registration_controller import (cancel_registration,
                                                          list_my_registrations,
                                                          register_for_event,
                                                          update_registration_status)
from eventyukk.errors import ConflictError, NotFoundError, ValidationError
from eventyukk.models.attendance_model import AttendanceToken
from eventyukk.models.registration_model import EventRegistration, Registration


def _rows(db, model, user, event):
    return db.query(model).filter(model.user_id == user.id, model.event_id == event.id).all()


async def test_free_registration_is_approved_with_token(db, user, free_event, sent_emails):
    data = await register_for_event(db, user, {'event_id': free_event.id})

    assert data['status'] == 'approved'
    assert data['payment_status'] == 'paid'
    assert data['payment_method'] == 'cash'
    assert re.fullmatch(r'[A-Z0-9]{8}', data['token'])

    primary = _rows(db, Registration, user, free_event)
    operational = _rows(db, EventRegistration, user, free_event)
    assert len(primary) == 1 and len(operational) == 1
    assert primary[0].status == 'approved'
    assert primary[0].full_name == user.full_name
    assert primary[0].email == user.email

    token = db.query(AttendanceToken).filter(AttendanceToken.token == data['token']).one()
    assert token.registration_id == primary[0].id == data['primary_registration_id']
    assert token.is_used is False

    assert len(sent_emails) == 1
    assert sent_emails[0]['to'] == user.email
    assert data['token'] in sent_emails[0]['text']


async def test_token_expires_at_attendance_deadline(db, user, free_event):
    data = await register_for_event(db, user, {'event_id': free_event.id})

    expected = datetime.combine(free_event.event_date, time(23, 59, 59)) + timedelta(hours=1)
    assert data['tokenExpiresAt'] == expected
    primary = _rows(db, Registration, user, free_event)[0]
    assert primary.attendance_deadline == expected


async def test_paid_registration_is_pending_without_token(db, user, paid_event, sent_emails):
    data = await register_for_event(db, user, {'event_id': paid_event.id, 'payment_method': 'bank_transfer'})

    assert data['status'] == 'pending'
    assert data['payment_status'] == 'pending'
    assert data['payment_method'] == 'bank_transfer'
    assert data['payment_amount'] == 150000.0
    assert data['token'] is None
    assert data['tokenExpiresAt'] is None
    assert db.query(AttendanceToken).count() == 0
    assert sent_emails == []


async def test_paid_registration_defaults_to_midtrans(db, user, paid_event):
    data = await register_for_event(db, user, {'event_id': paid_event.id})
    assert data['payment_method'] == 'midtrans'


async def test_form_contact_overrides_profile(db, user, free_event):
    await register_for_event(db, user, {
        'event_id': free_event.id,
        'full_name': '  Budi Santoso  ',
        'email': 'budi@example.com',
        'institution': 'Universitas Indonesia',
    })

    primary = _rows(db, Registration, user, free_event)[0]
    assert primary.full_name == 'Budi Santoso'
    assert primary.email == 'budi@example.com'
    assert primary.institution == 'Universitas Indonesia'
    assert primary.phone == user.phone_number


async def test_duplicate_registration_conflicts(db, user, free_event, sent_emails):
    await register_for_event(db, user, {'event_id': free_event.id})

    with pytest.raises(ConflictError, match='already registered'):
        await register_for_event(db, user, {'event_id': free_event.id})

    assert len(_rows(db, Registration, user, free_event)) == 1
    assert len(_rows(db, EventRegistration, user, free_event)) == 1
    assert db.query(AttendanceToken).count() == 1
    assert len(sent_emails) == 1


async def test_full_event_rejects_new_registrations(db, make_user, make_event):
    event = make_event(max_participants=1)
    await register_for_event(db, make_user(), {'event_id': event.id})

    with pytest.raises(ConflictError, match='Event is full'):
        await register_for_event(db, make_user(), {'event_id': event.id})


async def test_pending_registrations_do_not_use_capacity(db, make_user, make_event):
    event = make_event(max_participants=1, price=50000.0, is_free=False)
    await register_for_event(db, make_user(), {'event_id': event.id})

    data = await register_for_event(db, make_user(), {'event_id': event.id})
    assert data['status'] == 'pending'


async def test_unknown_or_inactive_event_is_not_found(db, user, make_event):
    inactive = make_event(is_active=False)

    with pytest.raises(NotFoundError):
        await register_for_event(db, user, {'event_id': 9999})
    with pytest.raises(NotFoundError):
        await register_for_event(db, user, {'event_id': inactive.id})


async def test_registration_closes_one_hour_before_start(db, user, free_event):
    start = datetime.combine(free_event.event_date, time(9, 0))

    with pytest.raises(ValidationError, match='Pendaftaran sudah ditutup'):
        await register_for_event(db, user, {'event_id': free_event.id}, now=start - timedelta(minutes=30))
    with pytest.raises(ValidationError, match='Pendaftaran sudah ditutup'):
        await register_for_event(db, user, {'event_id': free_event.id}, now=start - timedelta(hours=1))

    data = await register_for_event(db, user, {'event_id': free_event.id}, now=start - timedelta(hours=2))
    assert data['status'] == 'approved'


async def test_date_override_is_validated(db, user, free_event):
    with pytest.raises(ValidationError, match='Invalid event date or time format'):
        await register_for_event(db, user, {'event_id': free_event.id, 'event_date': '2030/01/01'})

    data = await register_for_event(db, user, {
        'event_id': free_event.id,
        'event_date': f'{free_event.event_date.isoformat()}T00:00:00.000Z',
    })
    assert data['status'] == 'approved'


async def test_event_without_date_is_rejected(db, user, make_event):
    event = make_event(event_date=None)
    with pytest.raises(ValidationError, match='Event date is required'):
        await register_for_event(db, user, {'event_id': event.id})


async def test_free_registration_requires_valid_contact(db, make_user, free_event):
    with pytest.raises(ValidationError, match='Email wajib diisi'):
        await register_for_event(db, make_user(), {'event_id': free_event.id, 'email': 'not-an-email'})
    with pytest.raises(ValidationError, match='Nama lengkap wajib diisi'):
        await register_for_event(db, make_user(full_name='A'), {'event_id': free_event.id})

    assert db.query(Registration).count() == 0


async def test_failed_write_leaves_no_primary_row(db, user, free_event, monkeypatch):
    async def broken_token(*args, **kwargs):
        raise ConflictError('Could not allocate a unique attendance token')

    monkeypatch.setattr(registration_controller, 'create_attendance_token', broken_token)

    with pytest.raises(ConflictError):
        await register_for_event(db, user, {'event_id': free_event.id})

    assert db.query(Registration).count() == 0
    assert db.query(EventRegistration).count() == 0


async def test_parallel_duplicate_registration_rolls_back(db, user, free_event, monkeypatch, sent_emails):
    original_contact = registration_controller._registrant_contact

    def contact_after_parallel_insert(registrant, registration_data):
        # Another request for the same pair wins after the duplicate check
        db.add(EventRegistration(user_id=user.id, event_id=free_event.id, status='approved'))
        db.flush()
        return original_contact(registrant, registration_data)

    monkeypatch.setattr(registration_controller, '_registrant_contact', contact_after_parallel_insert)

    with pytest.raises(ConflictError, match='already registered'):
        await register_for_event(db, user, {'event_id': free_event.id})

    assert db.query(Registration).count() == 0
    assert db.query(EventRegistration).count() == 0
    assert db.query(AttendanceToken).count() == 0
    assert sent_emails == []


async def test_email_failure_does_not_fail_registration(db, user, free_event, monkeypatch):
    async def failing_send_email(**kwargs):
        return {'success': False, 'message': 'SMTP down'}

    monkeypatch.setattr('eventyukk.controller.token_service.send_email', failing_send_email)

    data = await register_for_event(db, user, {'event_id': free_event.id})
    assert data['token']
    assert db.query(AttendanceToken).count() == 1


async def test_list_my_registrations_includes_token(db, user, free_event, paid_event):
    free = await register_for_event(db, user, {'event_id': free_event.id})
    await register_for_event(db, user, {'event_id': paid_event.id})

    data = await list_my_registrations(db, user)
    assert data['pagination']['total'] == 2
    tokens = {row['event_id']: row['attendance_token'] for row in data['registrations']}
    assert tokens[free_event.id] == free['token']
    assert tokens[paid_event.id] is None

    pending = await list_my_registrations(db, user, status='pending')
    assert [row['event_id'] for row in pending['registrations']] == [paid_event.id]


async def test_cancel_updates_both_rows(db, user, paid_event):
    data = await register_for_event(db, user, {'event_id': paid_event.id})

    await cancel_registration(db, user, data['primary_registration_id'])

    assert _rows(db, Registration, user, paid_event)[0].status == 'cancelled'
    assert _rows(db, EventRegistration, user, paid_event)[0].status == 'cancelled'

    with pytest.raises(ValidationError, match='already cancelled'):
        await cancel_registration(db, user, data['primary_registration_id'])


async def test_cancel_rejects_confirmed_and_foreign_registrations(db, user, make_user, paid_event):
    data = await register_for_event(db, user, {'event_id': paid_event.id})
    primary = _rows(db, Registration, user, paid_event)[0]
    primary.status = 'confirmed'
    db.commit()

    with pytest.raises(ValidationError, match='Cannot cancel confirmed registration'):
        await cancel_registration(db, user, data['primary_registration_id'])
    with pytest.raises(NotFoundError):
        await cancel_registration(db, make_user(), data['primary_registration_id'])


async def test_admin_approval_issues_token_once(db, user, paid_event, sent_emails):
    data = await register_for_event(db, user, {'event_id': paid_event.id})

    first = await update_registration_status(db, data['id'], 'approved')
    second = await update_registration_status(db, data['id'], 'confirmed')

    assert first['token'] and first['token'] == second['token']
    assert db.query(AttendanceToken).count() == 1
    assert len(sent_emails) == 1
    assert _rows(db, EventRegistration, user, paid_event)[0].payment_status == 'paid'
    assert _rows(db, Registration, user, paid_event)[0].status == 'confirmed'

    with pytest.raises(ValidationError, match='Invalid status'):
        await update_registration_status(db, data['id'], 'attended')


# ----------------------- HTTP -----------------------
def test_register_endpoint(client, auth_headers, free_event):
    response = client.post('/registrations/', json={'event_id': free_event.id}, headers=auth_headers)

    assert response.status_code == 201
    body = response.json()
    assert body['code'] == 201
    assert body['data']['status'] == 'approved'
    assert len(body['data']['token']) == 8

    again = client.post('/registrations/', json={'event_id': free_event.id}, headers=auth_headers)
    assert again.status_code == 409
    assert again.json()['message'] == 'You have already registered for this event'


def test_register_endpoint_requires_user(client, free_event):
    response = client.post('/registrations/', json={'event_id': free_event.id})
    assert response.status_code == 401


def test_register_endpoint_unknown_event(client, auth_headers):
    response = client.post('/registrations/', json={'event_id': 404}, headers=auth_headers)
    assert response.status_code == 404
    assert response.json()['message'] == 'Event not found or inactive'


def test_check_and_get_registration(client, auth_headers, free_event):
    before = client.get(f'/registrations/check/{free_event.id}', headers=auth_headers).json()
    assert before['data']['is_registered'] is False

    created = client.post('/registrations/', json={'event_id': free_event.id}, headers=auth_headers).json()
    after = client.get(f'/registrations/check/{free_event.id}', headers=auth_headers).json()
    assert after['data'] == {
        'is_registered': True,
        'status': 'approved',
        'registration_id': created['data']['id'],
    }

    primary_id = created['data']['primary_registration_id']
    detail = client.get(f'/registrations/{primary_id}', headers=auth_headers)
    assert detail.status_code == 200
    assert detail.json()['data']['event_title'] == free_event.title

    listing = client.get('/registrations/my-registrations', headers=auth_headers)
    assert listing.json()['data']['pagination']['total'] == 1


def test_resend_token_reports_email_failure(client, auth_headers, free_event, monkeypatch):
    created = client.post('/registrations/', json={'event_id': free_event.id}, headers=auth_headers).json()
    primary_id = created['data']['primary_registration_id']

    ok = client.post(f'/registrations/{primary_id}/resend-token', headers=auth_headers)
    assert ok.status_code == 200
    assert ok.json()['data']['sent'] is True

    async def failing_send_email(**kwargs):
        return {'success': False, 'message': 'SMTP down'}

    monkeypatch.setattr('eventyukk.controller.token_service.send_email', failing_send_email)
    failed = client.post(f'/registrations/{primary_id}/resend-token', headers=auth_headers)
    assert failed.status_code == 502


def test_admin_status_endpoint_requires_admin(client, db, user, auth_headers, admin_headers, paid_event):
    created = client.post('/registrations/', json={'event_id': paid_event.id}, headers=auth_headers).json()
    registration_id = created['data']['id']

    forbidden = client.put(f'/admin/registrations/{registration_id}/status',
                           json={'status': 'approved'}, headers=auth_headers)
    assert forbidden.status_code == 403

    response = client.put(f'/admin/registrations/{registration_id}/status',
                          json={'status': 'approved'}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()['data']['status'] == 'approved'
    assert response.json()['data']['token']
