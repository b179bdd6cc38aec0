"""Tests for answer grading."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from wordsbot.engine import GradedAnswer, NextTask, User, check_answer
from wordsbot.engine.recorder import normalize_answer
from wordsbot.errors import NoOutstandingAssignment, NotFound

CHAT = 1001


@pytest.fixture
def asked(service, learner, sample_task):
    service.users.touch(learner)
    service.catalog.upsert(*sample_task)
    result = service.next_task(CHAT)
    assert isinstance(result, NextTask)
    return result


class TestCheckAnswer:
    def test_normalizes_whitespace_and_case(self):
        assert normalize_answer("  Der   ROTE\tApfel ") == "der rote apfel"

    @pytest.mark.parametrize(
        "payload",
        [{"correct": "kuće"}, {"answer": "kuće"}, {"a": "kuće"}, {"a": ["kuća", "kuće"]}],
    )
    def test_answer_key_fields(self, payload):
        assert check_answer(" Kuće ", payload) is True
        assert check_answer("kuću", payload) is False

    def test_correct_field_wins(self):
        assert check_answer("x", {"correct": "x", "a": "y"}) is True
        assert check_answer("y", {"correct": "x", "a": "y"}) is False

    @pytest.mark.parametrize("payload", [None, {}, {"q": "red?"}, {"a": []}])
    def test_unknown_without_key(self, payload):
        assert check_answer("rot", payload) is None

    def test_bool_answer_is_taken_as_graded(self):
        assert check_answer(True, {"a": "rot"}) is True
        assert check_answer(False, None) is False

    def test_non_string_key(self):
        assert check_answer("4", {"a": 4}) is True


def test_correct_answer(service, asked, learner):
    graded = service.answer(CHAT, learner.uid, "ROT")

    assert graded.correct is True
    assert graded.uid == learner.uid
    assert graded.task_id == asked.task.id
    assert graded.asked_at == asked.assignment.assigned_at


def test_wrong_answer(service, asked, learner):
    assert service.answer(CHAT, learner.uid, "blau").correct is False


def test_unknown_correctness(service, learner):
    service.users.touch(learner)
    service.catalog.upsert({"topic": "free"}, {"q": "Describe your day"})
    service.next_task(CHAT)

    assert service.answer(CHAT, learner.uid, "anything").correct is None


def test_grading_closes_the_assignment(service, asked, learner):
    graded = service.answer(CHAT, learner.uid, "rot")

    assert service.history.outstanding(CHAT) is None
    record = service.history.assignments(CHAT)[0]
    assert record.assignment.answer_id == graded.id
    assert record.assignment.closed_at == graded.answered_at
    assert record.answer == graded

    with pytest.raises(NoOutstandingAssignment):
        service.answer(CHAT, learner.uid, "rot")


def test_nothing_assigned(service, learner):
    service.users.touch(learner)
    with pytest.raises(NoOutstandingAssignment) as exc_info:
        service.answer(CHAT, learner.uid, "rot")
    assert exc_info.value.session_id == CHAT


def test_expired_assignment_cannot_be_answered(service, asked, learner, clock):
    clock.advance(hours=2)

    with pytest.raises(NoOutstandingAssignment):
        service.answer(CHAT, learner.uid, "rot")

    assert service.history.outstanding(CHAT) is None
    assert service.history.answers(learner.uid) == []


def test_unknown_user_leaves_assignment_open(service, asked):
    with pytest.raises(NotFound):
        service.answer(CHAT, 999, "rot")
    assert service.history.outstanding(CHAT).id == asked.assignment.id


def test_answered_after_asked_and_user_marked_active(service, asked, learner, clock):
    clock.advance(minutes=3)
    graded = service.answer(CHAT, learner.uid, "rot")

    assert graded.answered_at >= graded.asked_at
    assert graded.answered_at == clock.now
    assert service.users.get(learner.uid).last_active_at == clock.now


def test_answered_at_never_precedes_asked_at(service, asked, learner, clock):
    # Clock stepped back between assignment and answer
    clock.advance(minutes=-5)
    graded = service.answer(CHAT, learner.uid, "rot")

    assert graded.answered_at == graded.asked_at


def test_chat_and_user_can_differ(service, asked, learner):
    classmate = User(uid=43, full_name="Marko")
    service.users.touch(classmate)

    graded = service.answer(CHAT, classmate.uid, "rot")

    assert graded.uid == classmate.uid
    assert service.history.answers(learner.uid) == []
    assert len(service.history.answers(classmate.uid)) == 1


def test_simultaneous_answers_grade_once(service, asked, learner):
    barrier = threading.Barrier(6)

    def submit(answer):
        barrier.wait(timeout=10)
        try:
            return service.answer(CHAT, learner.uid, answer)
        except NoOutstandingAssignment as e:
            return e

    with ThreadPoolExecutor(max_workers=6) as pool:
        outcomes = list(pool.map(submit, ["rot", "blau", "rot", "grün", "rot", "gelb"]))

    graded = [o for o in outcomes if isinstance(o, GradedAnswer)]
    rejected = [o for o in outcomes if isinstance(o, NoOutstandingAssignment)]
    assert len(graded) == 1
    assert len(rejected) == 5

    [record] = service.history.answers(learner.uid)
    assert record.answer == graded[0]
    assert service.history.outstanding(CHAT) is None
