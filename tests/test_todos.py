"""Tests for the per-session todo store."""

from __future__ import annotations

import threading

from plnr.tools.todos import Todo, TodoStatus, TodoStore, format_todos


def sample() -> list[Todo]:
    return [Todo("1", "Explore"), Todo("2", "Plan", TodoStatus.IN_PROGRESS)]


class TestTodoStore:
    """Ownership and isolation of stored todos."""

    def test_create_and_get(self) -> None:
        store = TodoStore()
        store.create_todos("s", sample())
        assert [(t.id, t.status) for t in store.get_todos("s")] == [
            ("1", TodoStatus.PENDING),
            ("2", TodoStatus.IN_PROGRESS),
        ]

    def test_unknown_session_is_empty(self) -> None:
        assert TodoStore().get_todos("nobody") == []

    def test_input_list_is_copied(self) -> None:
        """Mutating the list passed in does not change the store."""
        store = TodoStore()
        todos = sample()
        store.create_todos("s", todos)

        todos[0].status = TodoStatus.COMPLETED
        todos.append(Todo("3", "Sneaky"))

        stored = store.get_todos("s")
        assert len(stored) == 2
        assert stored[0].status is TodoStatus.PENDING

    def test_returned_items_are_copies(self) -> None:
        store = TodoStore()
        returned = store.create_todos("s", sample())
        returned[0].title = "changed"
        fetched = store.get_todos("s")
        fetched[1].status = TodoStatus.COMPLETED
        fetched.clear()

        again = store.get_todos("s")
        assert again[0].title == "Explore"
        assert again[1].status is TodoStatus.IN_PROGRESS

    def test_create_replaces_list(self) -> None:
        store = TodoStore()
        store.create_todos("s", sample())
        store.create_todos("s", [Todo("9", "Only")])
        assert [t.id for t in store.get_todos("s")] == ["9"]

    def test_update(self) -> None:
        store = TodoStore()
        store.create_todos("s", sample())
        assert store.update_todo("s", "2", TodoStatus.COMPLETED) is True
        assert store.get_todos("s")[1].status is TodoStatus.COMPLETED

    def test_update_unknown(self) -> None:
        store = TodoStore()
        store.create_todos("s", sample())
        assert store.update_todo("s", "7", TodoStatus.COMPLETED) is False
        assert store.update_todo("other", "1", TodoStatus.COMPLETED) is False

    def test_sessions_are_isolated(self) -> None:
        store = TodoStore()
        store.create_todos("a", sample())
        store.create_todos("b", [Todo("x", "Other")])
        store.clear("a")
        assert store.get_todos("a") == []
        assert [t.id for t in store.get_todos("b")] == ["x"]

    def test_concurrent_updates(self) -> None:
        store = TodoStore()
        store.create_todos("s", [Todo(str(i), f"task {i}") for i in range(50)])

        threads = [
            threading.Thread(target=store.update_todo, args=("s", str(i), TodoStatus.COMPLETED))
            for i in range(50)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(t.status is TodoStatus.COMPLETED for t in store.get_todos("s"))


class TestFormatTodos:
    def test_marks(self) -> None:
        todos = sample() + [Todo("3", "Ship", TodoStatus.COMPLETED)]
        assert format_todos(todos) == "[ ] 1. Explore\n[~] 2. Plan\n[x] 3. Ship"

    def test_empty(self) -> None:
        assert format_todos([]) == "No todos"
