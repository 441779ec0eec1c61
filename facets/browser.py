"""Window model the hydration engine runs against: location, session history, events.

It mirrors the browser behaviors the engine depends on:
- ``history.push_state`` adds an entry without firing any event.
- Assigning a new hash adds an entry and fires ``hashchange``; the same hash does nothing.
- Traversal (``back``/``forward``/``go``) fires ``popstate`` with the entry's state,
  plus ``hashchange`` when the fragment differs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import urlsplit


@dataclass(frozen=True)
class Event:
    type: str
    state: Any = None


Listener = Callable[[Event], None]


@dataclass(frozen=True)
class HistoryEntry:
    state: Any
    pathname: str
    hash: str


def split_url(url: str, *, current_pathname: str = "/") -> tuple[str, str]:
    parts = urlsplit(url)
    pathname = parts.path or current_pathname
    return pathname, f"#{parts.fragment}" if parts.fragment else ""


class Location:
    def __init__(self, pathname: str = "/", hash_value: str = ""):
        self.pathname = pathname
        self.hash = hash_value

    @property
    def href(self) -> str:
        return f"{self.pathname}{self.hash}"

    def __repr__(self) -> str:
        return f"Location({self.href!r})"


class SessionHistory:
    def __init__(self, window: Window):
        self._window = window
        location = window.location
        self._entries = [HistoryEntry(None, location.pathname, location.hash)]
        self._index = 0
        self.push_count = 0

    @property
    def length(self) -> int:
        return len(self._entries)

    @property
    def state(self) -> Any:
        return self._entries[self._index].state

    def push_state(self, state: Any, url: str) -> None:
        pathname, hash_value = split_url(url, current_pathname=self._window.location.pathname)
        del self._entries[self._index + 1 :]
        self._entries.append(HistoryEntry(state, pathname, hash_value))
        self._index += 1
        self.push_count += 1
        self._window._set_location(pathname, hash_value)

    def replace_state(self, state: Any, url: str) -> None:
        pathname, hash_value = split_url(url, current_pathname=self._window.location.pathname)
        self._entries[self._index] = HistoryEntry(state, pathname, hash_value)
        self._window._set_location(pathname, hash_value)

    def _push_fragment(self, hash_value: str) -> None:
        pathname = self._window.location.pathname
        del self._entries[self._index + 1 :]
        self._entries.append(HistoryEntry(None, pathname, hash_value))
        self._index += 1
        self.push_count += 1

    def go(self, delta: int) -> None:
        target = self._index + delta
        if delta == 0 or target < 0 or target >= len(self._entries):
            return

        previous_hash = self._window.location.hash
        self._index = target
        entry = self._entries[target]
        self._window._set_location(entry.pathname, entry.hash)
        self._window.dispatch_event(Event("popstate", entry.state))
        if entry.hash != previous_hash:
            self._window.dispatch_event(Event("hashchange"))

    def back(self) -> None:
        self.go(-1)

    def forward(self) -> None:
        self.go(1)


class Window:
    def __init__(self, url: str = "/"):
        pathname, hash_value = split_url(url)
        self.location = Location(pathname, hash_value)
        self.history = SessionHistory(self)
        self._listeners: dict[str, list[Listener]] = {}

    def _set_location(self, pathname: str, hash_value: str) -> None:
        self.location.pathname = pathname
        self.location.hash = hash_value

    def add_event_listener(self, event_type: str, listener: Listener) -> None:
        self._listeners.setdefault(event_type, []).append(listener)

    def remove_event_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def dispatch_event(self, event: Event) -> None:
        for listener in list(self._listeners.get(event.type, [])):
            listener(event)

    def assign_hash(self, hash_value: str) -> None:
        """Fragment navigation, as ``location.hash = value``."""
        normalized = hash_value if not hash_value or hash_value.startswith("#") else f"#{hash_value}"
        if normalized == "#":
            normalized = ""
        if normalized == self.location.hash:
            return
        self.history._push_fragment(normalized)
        self.location.hash = normalized
        self.dispatch_event(Event("hashchange"))
