"""
Change Feed Abstract Base Class

Defines the interface for row-level change notifications. Writers
publish a ChangeEvent after committing; readers register a listener
per table and await events from it.

Implementations:
    - InMemoryChangeFeed: single-process fan-out (development, tests)
    - RedisChangeFeed: Redis pub/sub across processes (staging, production)
"""

import json
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Union


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    """A committed change to one row."""
    table: str
    event_type: ChangeType
    record_id: int

    def to_json(self) -> str:
        payload = asdict(self)
        payload["event_type"] = self.event_type.value
        return json.dumps(payload)

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "ChangeEvent":
        data = json.loads(raw)
        return cls(
            table=data["table"],
            event_type=ChangeType(data["event_type"]),
            record_id=int(data["record_id"]),
        )


class ChangeListener(ABC):
    """A registered interest in one table's change events."""

    @abstractmethod
    async def get(self) -> ChangeEvent:
        """Wait for the next event."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        pass


class BaseChangeFeed(ABC):
    """Abstract base class for change feeds."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def publish(self, event: ChangeEvent) -> None:
        """Deliver an event to every listener on its table."""
        pass

    @abstractmethod
    async def listen(self, table: str) -> ChangeListener:
        """
        Register a listener for `table`.

        Events published after this call returns are delivered to it.
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check feed connectivity."""
        pass

    async def close(self) -> None:
        """Release connections held by the feed."""
        return None
