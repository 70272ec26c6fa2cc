from datetime import date, datetime, time
from types import SimpleNamespace

import pytest

from eventyukk.utils.schedule import (attendance_deadline_for,
                                      event_end,
                                      event_start,
                                      parse_date_string,
                                      parse_time_string)


def _event(**fields):
    data = {'id': 1, 'event_date': None, 'event_time': None, 'end_date': None, 'end_time': None}
    data.update(fields)
    return SimpleNamespace(**data)


def test_parse_date_string():
    assert parse_date_string('2025-01-31') == date(2025, 1, 31)
    assert parse_date_string('2025-01-31T17:00:00.000Z') == date(2025, 1, 31)
    assert parse_date_string(datetime(2025, 1, 31, 8, 0)) == date(2025, 1, 31)
    with pytest.raises(ValueError):
        parse_date_string('31/01/2025')


def test_parse_time_string():
    assert parse_time_string('09:30') == time(9, 30)
    assert parse_time_string('09:30:15') == time(9, 30, 15)
    assert parse_time_string(None) == time(0, 0)
    with pytest.raises(ValueError):
        parse_time_string('9')


def test_event_start_and_end():
    event = _event(event_date=date(2025, 5, 1), event_time='13:00')
    assert event_start(event) == datetime(2025, 5, 1, 13, 0)
    assert event_start(event, '2025-05-02') == datetime(2025, 5, 2, 13, 0)
    assert event_end(event) == datetime(2025, 5, 1, 23, 59, 59)

    multi_day = _event(event_date=date(2025, 5, 1), end_date=date(2025, 5, 3), end_time='17:00')
    assert event_end(multi_day) == datetime(2025, 5, 3, 17, 0)


def test_attendance_deadline_fallbacks():
    now = datetime(2025, 1, 1, 8, 0)

    normal = _event(event_date=date(2025, 5, 1), end_time='16:00')
    assert attendance_deadline_for(normal, now) == datetime(2025, 5, 1, 17, 0)

    bad_end_time = _event(event_date=date(2025, 5, 1), end_time='late')
    assert attendance_deadline_for(bad_end_time, now) == datetime(2025, 5, 2, 0, 0)

    no_date = _event()
    assert attendance_deadline_for(no_date, now) == datetime(2025, 1, 2, 8, 0)
