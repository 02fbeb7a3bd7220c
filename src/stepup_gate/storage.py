"""Tab-scoped key/value storage.

Models the browser's per-tab session storage: string keys and values that
live as long as the tab session and are gone after a full restart. The
trust store is the only reader/writer of the gate's keys.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ITabStorage(Protocol):
    """Protocol for tab-scoped storage (``sessionStorage`` semantics)."""

    def get_item(self, key: str) -> str | None:
        """Return the stored value or None if the key is absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    def remove_item(self, key: str) -> None:
        """Remove a key. Removing a missing key is not an error."""
        ...


class InMemoryTabStorage(ITabStorage):
    """In-process tab storage.

    One instance corresponds to one tab session. Create a new instance to
    simulate a browser restart.

    Example:
        ```python
        storage = InMemoryTabStorage()
        storage.set_item("policy_check_complete", "true")
        assert storage.get_item("policy_check_complete") == "true"
        ```
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)

    def clear_all(self) -> None:
        """Clear everything. Useful for testing cleanup."""
        self._items.clear()


__all__: list[str] = ["ITabStorage", "InMemoryTabStorage"]
