"""Errors raised by the drill engine."""

from __future__ import annotations


class DrillError(Exception):
    """Base class for engine errors surfaced to the transport layer."""


class NotFound(DrillError):
    """An operation referenced an id that does not exist."""

    def __init__(self, kind: str, ident: int):
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind} {ident} not found")


class AlreadyAwaiting(DrillError):
    """The session already has an outstanding task."""

    def __init__(self, session_id: int, task_id: int):
        self.session_id = session_id
        self.task_id = task_id
        super().__init__(f"chat {session_id} is still awaiting an answer for task {task_id}")


class NoOutstandingAssignment(DrillError):
    """An answer arrived for a session with nothing pending."""

    def __init__(self, session_id: int):
        self.session_id = session_id
        super().__init__(f"chat {session_id} has no outstanding task")


class InvalidFilter(DrillError, ValueError):
    """Filter text that parses to no usable condition."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"invalid filter: {text!r}")


class StoreUnavailable(DrillError):
    """The backing store kept failing after all retries."""

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(f"store unavailable: {operation} failed after {attempts} attempts")
