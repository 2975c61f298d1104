import asyncio
import json

import pytest

from resolver.channel import ChannelMessage, MessageBus, PendingChannelRequest, ProtocolMismatch
from resolver.classifier import IndicatorSet

URL = "https://thepiratebay.org/description.php?id=1"


def _payload(url=URL, flags="🇸🇪🇬🇧") -> str:
    return json.dumps({"url": url, "flags": flags})


def test_decode_rejects_malformed():
    for bad in ("{not json", "[]", json.dumps({"flags": "🇸🇪"}), json.dumps({"url": URL, "flags": 3}), None):
        with pytest.raises(ProtocolMismatch):
            ChannelMessage.decode(bad)


def test_decode_tolerates_missing_flags():
    msg = ChannelMessage.decode(json.dumps({"url": URL}))
    assert msg.indicators == IndicatorSet()


def test_bus_survives_failing_listener():
    bus = MessageBus()
    got = []

    def bad(sender, data):
        raise RuntimeError("boom")

    bus.add_listener(bad)
    bus.add_listener(lambda s, d: got.append(d))
    bus.post("sender", "data")
    assert got == ["data"]
    bus.remove_listener(bad)
    bus.remove_listener(bad)
    assert bus.listener_count == 1


@pytest.mark.asyncio
async def test_accepts_message_from_expected_sender():
    bus = MessageBus()
    sender = object()
    with PendingChannelRequest(URL, sender, bus) as req:
        bus.post(sender, _payload())
        assert await req.result(1.0) == IndicatorSet({"swedish", "english"})
    assert bus.listener_count == 0


@pytest.mark.asyncio
async def test_empty_flags_resolve_to_empty_set():
    bus = MessageBus()
    sender = object()
    with PendingChannelRequest(URL, sender, bus) as req:
        bus.post(sender, _payload(flags=""))
        assert await req.result(1.0) == IndicatorSet()


@pytest.mark.asyncio
async def test_foreign_sender_and_wrong_url_are_discarded_then_times_out():
    bus = MessageBus()
    sender = object()
    with PendingChannelRequest(URL, sender, bus) as req:
        bus.post(object(), _payload())                       # someone else's render
        bus.post(sender, _payload(url=URL + "&page=2"))       # navigated away
        bus.post(sender, "garbage")                           # malformed
        bus.post(sender, _payload(flags="??"))                # unknown flags
        assert not req.done
        with pytest.raises(asyncio.TimeoutError):
            await req.result(0.05)


@pytest.mark.asyncio
async def test_valid_message_after_discarded_ones_is_accepted():
    bus = MessageBus()
    sender = object()
    with PendingChannelRequest(URL, sender, bus) as req:
        bus.post(object(), _payload(flags="🇫🇷"))
        bus.post(sender, _payload(flags="🇩🇪"))
        assert await req.result(1.0) == IndicatorSet({"german"})


@pytest.mark.asyncio
async def test_nothing_accepted_after_close():
    bus = MessageBus()
    sender = object()
    req = PendingChannelRequest(URL, sender, bus)
    req.close()
    bus.post(sender, _payload())
    assert bus.listener_count == 0
    with pytest.raises(asyncio.CancelledError):
        await req.result(0.05)


@pytest.mark.asyncio
async def test_concurrent_requests_do_not_cross_talk():
    bus = MessageBus()
    a, b = object(), object()
    url_b = "https://uindex.org/details/2"
    with PendingChannelRequest(URL, a, bus) as ra, PendingChannelRequest(url_b, b, bus) as rb:
        bus.post(b, _payload(url=url_b, flags="🇳🇴"))
        bus.post(a, _payload(flags="🇩🇰"))
        assert await ra.result(1.0) == IndicatorSet({"danish"})
        assert await rb.result(1.0) == IndicatorSet({"norwegian"})
