"""
Console lifecycle events.

Events are published to the nsqd HTTP API on the "console-lifecycle" topic.
Publishing is fire-and-forget: failures are logged and never reach the
workflow that raised the event.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional, Type, Union

import httpx
from pydantic import BaseModel, Field

from .config import get_settings
from .schemas import ProvisioningTask

logger = logging.getLogger(__name__)

TOPIC_CONSOLE = "console-lifecycle"

EVENT_CREATE_CONSOLE = "CreateConsole"
EVENT_DELETE_CONSOLE = "DeleteConsole"


class EventHeader(BaseModel):
    """Fields common to every event."""
    namespace: str
    username: str = Field("", description="User who requested the task")
    topic: List[str] = Field(default_factory=lambda: [TOPIC_CONSOLE])
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ConsoleCreated(EventHeader):
    event_type: Literal["CreateConsole"] = EVENT_CREATE_CONSOLE
    clustername: str


class ConsoleDeleted(EventHeader):
    event_type: Literal["DeleteConsole"] = EVENT_DELETE_CONSOLE
    clustername: str


ConsoleEvent = Union[ConsoleCreated, ConsoleDeleted]

EVENT_TYPES: Dict[str, Type[BaseModel]] = {
    EVENT_CREATE_CONSOLE: ConsoleCreated,
    EVENT_DELETE_CONSOLE: ConsoleDeleted,
}


def build_event(event_type: str, task: ProvisioningTask) -> ConsoleEvent:
    """
    Build the event for a completed task.

    Raises:
        ValueError: unknown event type
    """
    try:
        event_cls = EVENT_TYPES[event_type]
    except KeyError:
        raise ValueError(f"Unknown event type: {event_type}") from None

    return event_cls(
        namespace=task.namespace,
        username=task.actor,
        clustername=task.cluster_name,
    )


class EventPublisher:
    """Publishes lifecycle events to nsqd over HTTP."""

    def __init__(
        self,
        address: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        settings = get_settings()
        self.address = (settings.events_address if address is None else address).rstrip("/")
        self.timeout = settings.events_timeout_seconds if timeout is None else timeout
        self.transport = transport

    async def publish(self, event: ConsoleEvent) -> bool:
        """Publish an event. Returns False (after logging) if it could not be delivered."""
        if not self.address:
            logger.debug(f"[EVENTS] No event address configured, dropping {event.event_type}")
            return False

        delivered = True
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as http:
            for topic in event.topic:
                try:
                    response = await http.post(
                        f"{self.address}/pub",
                        params={"topic": topic},
                        content=event.model_dump_json(),
                        headers={"Content-Type": "application/json"},
                    )
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    logger.error(f"[EVENTS] Failed to publish {event.event_type} to {topic}: {e}")
                    delivered = False
                    continue
                logger.debug(f"[EVENTS] Published {event.event_type} to {topic}")
        return delivered
