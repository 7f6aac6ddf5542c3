"""Seams between the flow and whatever hosts it.

The flow never touches a browser directly. It reads the load location,
navigates, keeps the auth credential in durable storage and raises
notices through these interfaces. ``BrowserNavigator``, ``MemoryStorage``
and ``NoticeLog`` are the headless implementations used by the tests and
by scripted runs against a live backend.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit

logger = logging.getLogger(__name__)

AUTH_TOKEN_KEY = "token"


@dataclass(frozen=True)
class Location:
    """Path plus query parameters of the addressable location."""
    path: str
    params: tuple[tuple[str, str], ...] = ()

    @classmethod
    def parse(cls, url: str) -> "Location":
        parts = urlsplit(url)
        return cls(parts.path or "/", tuple(parse_qsl(parts.query, keep_blank_values=True)))

    def get(self, name: str) -> Optional[str]:
        for key, value in self.params:
            if key == name:
                return value
        return None

    def without(self, *names: str) -> "Location":
        return Location(self.path, tuple((k, v) for k, v in self.params if k not in names))

    def __str__(self) -> str:
        if not self.params:
            return self.path
        return f"{self.path}?{urlencode(self.params)}"


class Navigator(ABC):
    """Routing surface of the page."""

    @property
    @abstractmethod
    def location(self) -> Location:
        ...

    @abstractmethod
    def navigate(self, url: str) -> None:
        """Full-page navigation; nothing held in memory survives it."""
        ...

    @abstractmethod
    def push(self, url: str) -> None:
        """In-app route change."""
        ...

    @abstractmethod
    def replace(self, url: str) -> None:
        """Rewrite the current history entry without reloading."""
        ...

    @abstractmethod
    def open(self, url: str) -> None:
        """Open ``url`` in a new tab."""
        ...


class DurableStorage(ABC):
    """Client-side storage that survives full-page navigation."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...

    def auth_token(self) -> Optional[str]:
        return self.get(AUTH_TOKEN_KEY)


class Notifier(ABC):
    """Toast-style notices."""

    @abstractmethod
    def notify(self, level: str, message: str) -> None:
        ...

    def success(self, message: str) -> None:
        self.notify("success", message)

    def info(self, message: str) -> None:
        self.notify("info", message)

    def error(self, message: str) -> None:
        self.notify("error", message)


# ── Headless implementations ─────────────────────────────────


class BrowserNavigator(Navigator):
    """Keeps the history stack in memory and records where the page went."""

    def __init__(self, url: str):
        self.history: list[str] = [url]
        self.left_app_to: Optional[str] = None
        self.opened: list[str] = []

    @property
    def location(self) -> Location:
        return Location.parse(self.history[-1])

    def navigate(self, url: str) -> None:
        logger.info("Leaving the app for %s", url)
        self.left_app_to = url

    def push(self, url: str) -> None:
        self.history.append(url)

    def replace(self, url: str) -> None:
        self.history[-1] = url

    def open(self, url: str) -> None:
        self.opened.append(url)


class MemoryStorage(DurableStorage):
    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


@dataclass
class NoticeLog(Notifier):
    notices: list[tuple[str, str]] = field(default_factory=list)

    def notify(self, level: str, message: str) -> None:
        logger.debug("notice [%s] %s", level, message)
        self.notices.append((level, message))

    def messages(self, level: Optional[str] = None) -> list[str]:
        return [m for lvl, m in self.notices if level is None or lvl == level]
