"""
Celery beat wiring for the lifecycle sweep
"""
from datetime import date

from sqlalchemy.orm import sessionmaker

from eventyukk.worker import tasks
from eventyukk.worker.celery_app import celery_app


def test_sweep_is_scheduled_hourly():
    entry = celery_app.conf.beat_schedule['sweep-ended-events']
    assert entry['task'] == 'eventyukk.worker.tasks.sweep_ended_events'
    assert entry['schedule'] == 3600.0


def test_sweep_task_uses_its_own_session(db, make_event, monkeypatch):
    event = make_event(event_date=date(2020, 1, 1))
    monkeypatch.setattr(tasks, 'SessionLocal', sessionmaker(bind=db.get_bind()))

    result = tasks.sweep_ended_events()

    assert result == {'skipped': False, 'absent': 0, 'archived': 1}
    db.refresh(event)
    assert event.status == 'completed'
