"""Tests for AuditLedger notes — append-only, ordered, never deduplicated."""
from datetime import timedelta

import pytest

from app.models.schedule_note import ScheduleNote
from app.services.authorization import load_capabilities
from app.services.errors import Forbidden, NotFound, ValidationError


def _schedule(engine, db, world, clock):
    return engine.create_schedule(
        actor=load_capabilities(db, world["admin"].actor_id),
        addon_id=world["addon"].addon_id,
        vendor_id=world["vendor"].actor_id,
        subscription_id=world["subscription"].subscription_id,
        scheduled_date=clock() + timedelta(days=1),
        email_subject="Staging visit",
        email_message="We will stage the living room.",
    ).schedule


def test_identical_notes_are_kept_twice_in_order(engine, db, world, clock):
    schedule = _schedule(engine, db, world, clock)
    operator = load_capabilities(db, world["operator"].actor_id)

    engine.add_note(operator, schedule.schedule_id, "Called vendor")
    clock.advance(minutes=1)
    engine.add_note(operator, schedule.schedule_id, "Called vendor")
    clock.advance(minutes=1)
    engine.add_note(operator, schedule.schedule_id, "Vendor confirmed")

    notes = list(engine.list_notes(schedule.schedule_id))
    assert [n.message for n in notes] == ["Called vendor", "Called vendor", "Vendor confirmed"]
    assert notes[0].note_id != notes[1].note_id
    assert all(n.author_id == world["operator"].actor_id for n in notes)
    assert notes[0].created_at < notes[2].created_at


def test_note_does_not_touch_status_or_version(engine, db, world, clock):
    schedule = _schedule(engine, db, world, clock)
    engine.add_note(load_capabilities(db, world["admin"].actor_id), schedule.schedule_id, "hello")

    fresh = engine.get_schedule(schedule.schedule_id)
    db.refresh(fresh)
    assert fresh.status.value == "scheduled"
    assert fresh.version == 1
    assert [n.message for n in fresh.notes] == ["hello"]


def test_history_is_lazy_and_restartable(engine, db, world, clock):
    schedule = _schedule(engine, db, world, clock)
    admin = load_capabilities(db, world["admin"].actor_id)
    history = engine.list_notes(schedule.schedule_id)
    assert list(history) == []

    engine.add_note(admin, schedule.schedule_id, "first")
    assert [n.message for n in history] == ["first"]

    engine.add_note(admin, schedule.schedule_id, "second")
    assert [n.message for n in history] == ["first", "second"]
    assert [n.message for n in history] == ["first", "second"]


def test_notes_allowed_on_terminal_schedule(engine, db, world, clock):
    schedule = _schedule(engine, db, world, clock)
    admin = load_capabilities(db, world["admin"].actor_id)
    engine.update_status(admin, schedule.schedule_id, "cancelled", cancellation_reason="duplicate booking")

    note = engine.add_note(admin, schedule.schedule_id, "Refund issued")
    assert note.message == "Refund issued"


def test_note_requires_scope(engine, db, world, clock):
    schedule = _schedule(engine, db, world, clock)
    with pytest.raises(Forbidden):
        engine.add_note(load_capabilities(db, world["outsider"].actor_id), schedule.schedule_id, "sneaky")
    assert db.query(ScheduleNote).count() == 0


def test_note_on_unknown_schedule(engine, db, world):
    with pytest.raises(NotFound):
        engine.add_note(load_capabilities(db, world["admin"].actor_id), "missing", "hello")


def test_empty_note_rejected(engine, db, world, clock):
    schedule = _schedule(engine, db, world, clock)
    with pytest.raises(ValidationError):
        engine.add_note(load_capabilities(db, world["admin"].actor_id), schedule.schedule_id, "  ")


def test_unknown_schedule_wins_over_blank_message(engine, db, world):
    with pytest.raises(NotFound):
        engine.add_note(load_capabilities(db, world["admin"].actor_id), "missing", "   ")
