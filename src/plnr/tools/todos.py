"""Per-session todo lists the model uses to report its own progress."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum


class TodoStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass
class Todo:
    id: str
    title: str
    status: TodoStatus = TodoStatus.PENDING

    def copy(self) -> Todo:
        return replace(self)


class TodoStore:
    """Ordered todo lists keyed by session id.

    The store owns every Todo it holds. Lists passed in are copied on the
    way in, and every read hands back fresh copies, so nothing a caller
    does to a returned list or item can reach the stored state.

    Locking is partitioned by session: each session id gets its own lock,
    and a short global lock only guards creation of those locks.
    """

    def __init__(self) -> None:
        self._todos: dict[str, list[Todo]] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = self._locks[session_id] = threading.Lock()
            return lock

    def create_todos(self, session_id: str, todos: Iterable[Todo]) -> list[Todo]:
        """Replace the session's list. Returns a copy of the stored list."""
        stored = [t.copy() for t in todos]
        with self._lock(session_id):
            self._todos[session_id] = stored
            return [t.copy() for t in stored]

    def update_todo(self, session_id: str, todo_id: str, status: TodoStatus) -> bool:
        """Set one todo's status. False when the session or id is unknown."""
        with self._lock(session_id):
            for todo in self._todos.get(session_id, ()):
                if todo.id == todo_id:
                    todo.status = TodoStatus(status)
                    return True
            return False

    def get_todos(self, session_id: str) -> list[Todo]:
        with self._lock(session_id):
            return [t.copy() for t in self._todos.get(session_id, ())]

    def clear(self, session_id: str) -> None:
        with self._lock(session_id):
            self._todos.pop(session_id, None)


def format_todos(todos: Iterable[Todo]) -> str:
    marks = {
        TodoStatus.PENDING: "[ ]",
        TodoStatus.IN_PROGRESS: "[~]",
        TodoStatus.COMPLETED: "[x]",
    }
    lines = [f"{marks[t.status]} {t.id}. {t.title}" for t in todos]
    return "\n".join(lines) if lines else "No todos"
