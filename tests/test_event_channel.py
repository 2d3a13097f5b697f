import threading

from ffconvert.services.event_channel import EventChannel


def test_events_arrive_in_publish_order():
    channel = EventChannel()
    first, second = [], []
    channel.subscribe("convert-log", first.append)
    channel.subscribe("convert-log", second.append)

    for i in range(100):
        channel.publish("convert-log", {"message": str(i)})

    expected = [{"message": str(i)} for i in range(100)]
    assert first == expected
    assert second == expected


def test_every_subscriber_sees_the_same_order_across_threads():
    """
    Verifies that concurrent publishers produce one global order shared by all subscribers.
    """
    channel = EventChannel()
    first, second = [], []
    channel.subscribe("convert-log", first.append)
    channel.subscribe("convert-log", second.append)

    def publish_many(prefix):
        for i in range(200):
            channel.publish("convert-log", f"{prefix}-{i}")

    threads = [threading.Thread(target=publish_many, args=(p,)) for p in "abc"]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(first) == 600
    assert first == second


def test_failing_subscriber_does_not_block_others():
    channel = EventChannel()
    received = []

    def broken(payload):
        raise RuntimeError("subscriber bug")

    channel.subscribe("convert-progress", broken)
    channel.subscribe("convert-progress", received.append)

    channel.publish("convert-progress", {"percent": 10.0})

    assert received == [{"percent": 10.0}]


def test_events_are_routed_by_name():
    channel = EventChannel()
    logs = []
    channel.subscribe("convert-log", logs.append)

    channel.publish("convert-progress", {"percent": 1.0})

    assert logs == []
