from decimal import Decimal

from app.feed.hub import FanoutHub
from app.schemas.market import NormalizedTick


def build_tick(symbol: str = "BTCUSDT", price: str = "65247.50") -> NormalizedTick:
    return NormalizedTick(
        symbol=symbol,
        price=Decimal(price),
        change_percent=Decimal("2.45"),
        volume=Decimal("100"),
        high_24h=Decimal("66000"),
        low_24h=Decimal("64000"),
        timestamp=1_700_000_000_000,
    )


def test_unsubscribe_twice_is_harmless() -> None:
    hub = FanoutHub()
    received: list[str] = []
    unsubscribe = hub.subscribe(lambda tick: received.append("a"))
    hub.subscribe(lambda tick: received.append("b"))

    unsubscribe()
    unsubscribe()
    hub.publish(build_tick())

    assert received == ["b"]
    assert hub.subscriber_count == 1


def test_same_callback_registered_twice_removes_only_one() -> None:
    hub = FanoutHub()
    received: list[NormalizedTick] = []
    first = hub.subscribe(received.append)
    hub.subscribe(received.append)

    first()
    hub.publish(build_tick())

    assert len(received) == 1


def test_publish_reaches_every_subscriber_once_even_if_one_raises() -> None:
    hub = FanoutHub()
    counts = [0] * 5

    def make_callback(index: int):
        def callback(tick: NormalizedTick) -> None:
            counts[index] += 1
            if index == 2:
                raise RuntimeError("boom")

        return callback

    for index in range(5):
        hub.subscribe(make_callback(index))

    delivered = hub.publish(build_tick())

    assert counts == [1, 1, 1, 1, 1]
    assert delivered == 4
    # A failing callback stays registered
    hub.publish(build_tick())
    assert counts == [2, 2, 2, 2, 2]


def test_publish_without_subscribers_is_dropped() -> None:
    hub = FanoutHub()
    assert hub.publish(build_tick()) == 0

    received: list[NormalizedTick] = []
    hub.subscribe(received.append)
    assert received == []


def test_subscriber_added_during_publish_gets_later_ticks_only_once() -> None:
    hub = FanoutHub()
    late: list[str] = []
    added = False

    def adder(tick: NormalizedTick) -> None:
        nonlocal added
        if not added:
            added = True
            hub.subscribe(lambda t: late.append(t.symbol))

    hub.subscribe(adder)
    hub.publish(build_tick("BTCUSDT"))
    hub.publish(build_tick("ETHUSDT"))
    hub.publish(build_tick("BNBUSDT"))

    assert "ETHUSDT" in late
    assert "BNBUSDT" in late
    assert len(late) == len(set(late))


def test_unsubscribe_during_publish_does_not_skip_others() -> None:
    hub = FanoutHub()
    received: list[str] = []
    handles = {}

    def first(tick: NormalizedTick) -> None:
        received.append("first")
        handles["first"]()
        handles["second"]()

    handles["first"] = hub.subscribe(first)
    handles["second"] = hub.subscribe(lambda tick: received.append("second"))
    hub.subscribe(lambda tick: received.append("third"))

    hub.publish(build_tick())

    assert received.count("first") == 1
    assert received.count("third") == 1
    assert hub.subscriber_count == 1
