"""Tests for reading back assignments and answers."""

from datetime import timedelta

from wordsbot.engine import UnknownTask

CHAT = 1001


def test_history_survives_task_deletion(service, learner, sample_task):
    service.users.touch(learner)
    task_id = service.catalog.upsert(*sample_task)
    service.next_task(CHAT)
    service.answer(CHAT, learner.uid, "rot")

    service.catalog.delete(task_id)

    [record] = service.history.assignments(CHAT)
    assert record.task == UnknownTask(task_id)
    assert not record.task.known
    assert record.answer.correct is True

    [answer] = service.history.answers(learner.uid)
    assert answer.task == UnknownTask(task_id)
    assert answer.answer.task_id == task_id


def test_history_survives_deactivation(service, learner, sample_task):
    service.users.touch(learner)
    task_id = service.catalog.upsert(*sample_task)
    service.next_task(CHAT)
    service.answer(CHAT, learner.uid, "rot")

    service.catalog.deactivate(task_id)

    [record] = service.history.answers(learner.uid)
    assert record.task.known
    assert record.task.active is False
    assert task_id not in {t.id for t in service.catalog.query()}


def test_assignments_limit_returns_most_recent(service, learner, clock):
    service.users.touch(learner)
    ids = [service.catalog.upsert({"n": str(i)}, {"q": str(i)}) for i in range(3)]
    for _ in ids:
        service.next_task(CHAT)
        service.answer(CHAT, learner.uid, "x")
        clock.advance(minutes=1)

    records = service.history.assignments(CHAT, limit=2)
    assert [r.task.id for r in records] == ids[1:]


def test_session_stats(service, learner, clock, sample_task):
    service.users.touch(learner)
    task_id = service.catalog.upsert(*sample_task)

    service.next_task(CHAT)
    wrong_at = clock.now
    service.answer(CHAT, learner.uid, "blau")
    clock.advance(minutes=10)
    service.next_task(CHAT)
    service.answer(CHAT, learner.uid, "rot")

    entry = service.history.session_stats(CHAT)[task_id]
    assert entry.last_asked_at == clock.now
    assert entry.last_correct is True
    assert entry.last_wrong_at == wrong_at


def test_answer_stat_counts_trailing_period(service, learner, clock, sample_task):
    service.users.touch(learner)
    service.catalog.upsert(*sample_task)
    service.catalog.upsert({"topic": "colors"}, {"q": "blue?", "a": "blau"})

    service.next_task(CHAT)
    service.answer(CHAT, learner.uid, "rot")
    clock.advance(days=3)
    service.next_task(CHAT)
    service.answer(CHAT, learner.uid, "wrong")

    week = service.users.answer_stat(learner.uid, timedelta(days=7))
    assert (week.count, week.correct) == (2, 1)
    assert week.accuracy == 0.5

    day = service.users.answer_stat(learner.uid, timedelta(days=1))
    assert (day.count, day.correct) == (1, 0)
