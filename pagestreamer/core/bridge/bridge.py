from __future__ import annotations

from typing import Any, Optional

from pagestreamer.core.streams import BroadcastChannel, Subscription
from pagestreamer.utils.logger import logger

from .protocol import BridgeEvent, Command, UnknownEvent, encode_command, parse_event
from .transport import MessageTransport


class MessageBridge:
    """
    Command/event channel between the host and one embedded viewer runtime.

    Notes:
    - `send()` is fire-and-forget and at-most-once. With no runtime attached
      the command is dropped; the runtime re-announces itself on load.
    - `receive()` never raises. Malformed input becomes an `UnknownEvent`.
    - Events reach subscribers in arrival order.
    """

    def __init__(self, name: str = "bridge") -> None:
        self.name = name
        self._transport: Optional[MessageTransport] = None
        self._events: BroadcastChannel[BridgeEvent] = BroadcastChannel(
            f"{name}-events"
        )
        self._sent_count = 0
        self._dropped_count = 0
        self._received_count = 0

    @property
    def attached(self) -> bool:
        return self._transport is not None

    @property
    def closed(self) -> bool:
        return self._events.closed

    @property
    def stats(self) -> dict[str, int]:
        return {
            "sent": self._sent_count,
            "dropped": self._dropped_count,
            "received": self._received_count,
        }

    def attach(self, transport: MessageTransport) -> None:
        self._transport = transport
        logger.debug("Bridge %s attached to %s", self.name, type(transport).__name__)

    def detach(self) -> None:
        self._transport = None

    def send(self, command: Command) -> bool:
        """Post a command. Returns False when it was dropped."""
        transport = self._transport
        if transport is None or self.closed:
            self._dropped_count += 1
            logger.debug(
                "Bridge %s dropped %s: no runtime attached", self.name, command.type
            )
            return False
        message = encode_command(command)
        try:
            transport.post(message)
        except Exception as exc:
            self._dropped_count += 1
            logger.warning(
                "Bridge %s failed to post %s: %s", self.name, command.type, exc
            )
            return False
        self._sent_count += 1
        return True

    def events(self) -> Subscription[BridgeEvent]:
        return self._events.subscribe()

    def receive(self, raw: Any) -> None:
        try:
            event = parse_event(raw)
        except Exception as exc:  # parse_event is total; guard the listener anyway
            event = UnknownEvent(event_type="", raw_payload=raw, reason=str(exc))
        if isinstance(event, UnknownEvent) and event.reason:
            logger.warning(
                "Bridge %s coerced malformed %s message: %s",
                self.name,
                event.event_type or "untyped",
                event.reason,
            )
        self._received_count += 1
        try:
            self._events.publish(event)
        except Exception as exc:
            logger.error("Bridge %s failed to publish event: %s", self.name, exc)

    def close(self) -> None:
        self._transport = None
        self._events.close()
