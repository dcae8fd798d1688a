from __future__ import annotations

import asyncio

from pagestreamer.core.bridge import (
    InMemoryHost,
    MessageBridge,
    PageChanged,
    SetPage,
    SetZoom,
    UnknownEvent,
    ZoomChanged,
)
from pagestreamer.core.streams import BroadcastChannel


def test_send_without_runtime_is_dropped() -> None:
    bridge = MessageBridge("test")
    assert bridge.send(SetPage(2)) is False
    assert bridge.stats == {"sent": 0, "dropped": 1, "received": 0}


def test_send_posts_envelope_through_attached_host() -> None:
    host = InMemoryHost()
    bridge = MessageBridge("test")
    host.embed("<html></html>", bridge)

    assert bridge.send(SetPage(2)) is True
    assert bridge.send(SetZoom(1.5)) is True
    assert host.sent == [
        {"type": "SET_PAGE", "payload": {"pageNumber": 2}, "version": 1},
        {"type": "SET_ZOOM", "payload": {"zoomLevel": 1.5}, "version": 1},
    ]

    host.unembed()
    assert not bridge.attached
    assert bridge.send(SetPage(3)) is False
    assert host.sent_types() == ["SET_PAGE", "SET_ZOOM"]


def test_transport_failure_counts_as_drop() -> None:
    class _BrokenTransport:
        def post(self, message) -> None:
            raise RuntimeError("page gone")

    bridge = MessageBridge("test")
    bridge.attach(_BrokenTransport())
    assert bridge.send(SetPage(1)) is False
    assert bridge.stats["dropped"] == 1


def test_events_arrive_in_emission_order_for_every_subscriber() -> None:
    async def _run() -> None:
        host = InMemoryHost()
        bridge = MessageBridge("test")
        host.embed("<html></html>", bridge)
        first = bridge.events()
        second = bridge.events()

        host.emit({"type": "PAGE_CHANGED", "payload": {"currentPage": 1, "totalPages": 3}})
        host.emit({"type": "SOMETHING_NEW", "payload": {}})
        host.emit("{broken")
        host.emit({"type": "ZOOM_CHANGED", "payload": {"zoomLevel": 2}})

        for sub in (first, second):
            got = [await sub.get(timeout_s=0.2) for _ in range(4)]
            assert isinstance(got[0], PageChanged)
            assert isinstance(got[1], UnknownEvent) and got[1].type == "SOMETHING_NEW"
            assert isinstance(got[2], UnknownEvent) and got[2].reason
            assert got[3] == ZoomChanged(zoom_level=2.0)
        assert bridge.stats["received"] == 4

    asyncio.run(_run())


def test_close_ends_event_iteration() -> None:
    async def _run() -> None:
        bridge = MessageBridge("test")
        sub = bridge.events()
        bridge.receive({"type": "ZOOM_CHANGED", "payload": {"zoomLevel": 1}})
        bridge.close()
        got = [event async for event in sub]
        assert got == [ZoomChanged(zoom_level=1.0)]
        assert bridge.closed
        assert bridge.send(SetPage(1)) is False

    asyncio.run(_run())


def test_broadcast_subscription_until_predicate() -> None:
    async def _run() -> None:
        channel: BroadcastChannel[int] = BroadcastChannel("numbers")
        bounded = channel.subscribe(until=lambda n: n >= 2)
        unbounded = channel.subscribe()
        for n in range(4):
            channel.publish(n)

        assert [n async for n in bounded] == [0, 1, 2]
        assert channel.subscriber_count == 1
        assert unbounded.pending == 4
        channel.close()
        assert [n async for n in unbounded] == [0, 1, 2, 3]

    asyncio.run(_run())
