"""
Event listing, highlight and admin maintenance
"""
from datetime import date, timedelta

import pytest

from eventyukk.controller.event_controller import (get_highlighted_event,
                                                   list_public_events,
                                                   set_highlighted)
from eventyukk.errors import NotFoundError
from eventyukk.models.event_model import Event


async def test_public_listing_hides_drafts_and_inactive(db, make_event):
    visible = make_event(title='Seminar Nasional AI')
    make_event(title='Draft Meetup', status='draft')
    make_event(title='Old Expo', is_active=False, status='completed')

    data = await list_public_events(db)
    assert [row['id'] for row in data['events']] == [visible.id]
    assert data['pagination'] == {'page': 1, 'limit': 10, 'total': 1, 'total_pages': 1}


async def test_public_listing_search_and_paging(db, make_event):
    today = date.today()
    first = make_event(title='Kelas Python', event_date=today + timedelta(days=1))
    second = make_event(title='Kelas Golang', event_date=today + timedelta(days=2))
    make_event(title='Lari Pagi', event_date=today + timedelta(days=3))

    found = await list_public_events(db, search='kelas')
    assert [row['id'] for row in found['events']] == [first.id, second.id]

    page_two = await list_public_events(db, page=2, limit=1, search='Kelas')
    assert [row['id'] for row in page_two['events']] == [second.id]
    assert page_two['pagination']['total_pages'] == 2


async def test_only_one_event_is_highlighted(db, make_event):
    first = make_event()
    second = make_event()

    await set_highlighted(db, first.id, True)
    await set_highlighted(db, second.id, True)

    highlighted = db.query(Event).filter(Event.is_highlighted.is_(True)).all()
    assert [event.id for event in highlighted] == [second.id]

    await set_highlighted(db, second.id, False)
    assert db.query(Event).filter(Event.is_highlighted.is_(True)).count() == 0

    with pytest.raises(NotFoundError):
        await set_highlighted(db, 9999, True)


async def test_highlight_falls_back_to_nearest_upcoming(db, make_event):
    today = date.today()
    make_event(event_date=today - timedelta(days=3))
    later = make_event(event_date=today + timedelta(days=20))
    nearest = make_event(event_date=today + timedelta(days=2))

    assert (await get_highlighted_event(db))['id'] == nearest.id

    await set_highlighted(db, later.id, True)
    assert (await get_highlighted_event(db))['id'] == later.id


async def test_no_highlight_without_upcoming_events(db, make_event):
    make_event(event_date=date.today() - timedelta(days=3))
    assert await get_highlighted_event(db) is None


# ----------------------- HTTP -----------------------
def test_admin_creates_and_updates_events(client, auth_headers, admin_headers):
    payload = {
        'title': 'Webinar Keuangan',
        'event_date': (date.today() + timedelta(days=30)).isoformat(),
        'event_time': '19:00',
        'price': 0,
        'status': 'published',
        'max_participants': 100,
    }

    forbidden = client.post('/events/', json=payload, headers=auth_headers)
    assert forbidden.status_code == 403

    created = client.post('/events/', json=payload, headers=admin_headers)
    assert created.status_code == 201
    event = created.json()['data']
    assert event['is_free'] is True
    assert event['registered_count'] == 0

    bad = client.put(f"/events/{event['id']}", json={'status': 'archived'}, headers=admin_headers)
    assert bad.status_code == 400

    updated = client.put(f"/events/{event['id']}", json={'price': 50000, 'is_free': False}, headers=admin_headers)
    assert updated.status_code == 200
    assert updated.json()['data']['is_free_event'] is False

    listed = client.get('/events/').json()
    assert [row['id'] for row in listed['data']['events']] == [event['id']]
    assert client.get(f"/events/{event['id']}").status_code == 200
    assert client.get('/events/9999').status_code == 404

    highlighted = client.put(f"/events/{event['id']}/highlight", json={'is_highlighted': True}, headers=admin_headers)
    assert highlighted.json()['data']['is_highlighted'] is True
    assert client.get('/events/highlighted/event').json()['data']['id'] == event['id']


def test_health(client):
    assert client.get('/health').json() == {'status': 'ok'}
