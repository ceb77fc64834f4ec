"""
Base Domain Classes

Building blocks shared by the domain apps:
- ValueObject: Immutable objects compared by value
- DomainEvent: Something that happened to a booking or a room
- EventRecorder: Mixin that lets a model collect events until commit
"""

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime
from typing import List
from uuid import UUID, uuid4

from django.utils import timezone


@dataclass(frozen=True)
class ValueObject(ABC):
    """
    Base class for value objects

    Value objects are immutable and have no identity.
    Two value objects are equal if all their attributes are equal.
    """
    pass


@dataclass
class DomainEvent:
    """
    Base class for domain events

    Events are collected while a unit of work is open and published
    to the message bus once the transaction has committed.
    """
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=timezone.now)
    aggregate_id: int | None = None


class EventRecorder:
    """
    Mixin for models that act as aggregate roots

    Django instantiates models without calling a dataclass-style init hook,
    so the event buffer is created lazily.
    """

    def _event_buffer(self) -> List[DomainEvent]:
        buffer = self.__dict__.get('_pending_events')
        if buffer is None:
            buffer = []
            self.__dict__['_pending_events'] = buffer
        return buffer

    def add_event(self, event: DomainEvent):
        """Add a domain event to be published"""
        self._event_buffer().append(event)

    def clear_events(self):
        """Clear all collected events (called after publishing)"""
        self._event_buffer().clear()

    @property
    def events(self) -> List[DomainEvent]:
        """Get copy of collected events"""
        return list(self._event_buffer())
