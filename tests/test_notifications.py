import asyncio
import json
import threading

from tableorder.services.notification_service import InMemoryOrderEventPublisher, RedisOrderEventPublisher


class RecordingClient:
    def __init__(self):
        self.messages = []

    def publish_message(self, channel, message):
        self.messages.append((channel, message))
        return True


def test_publish_waits_for_the_snapshot_being_read(publisher):
    reading, release = threading.Event(), threading.Event()

    def slow_reader():
        reading.set()
        release.wait(5)
        return []

    first = threading.Thread(target=publisher.publish_latest, args=("first", None, slow_reader))
    first.start()
    assert reading.wait(5)

    second = threading.Thread(target=publisher.publish_latest, args=("second", None, lambda: []))
    second.start()
    second.join(0.2)
    assert second.is_alive()
    assert list(publisher.events) == []

    release.set()
    first.join(5)
    second.join(5)
    assert [(e.event, e.sequence) for e in publisher.events] == [("first", 1), ("second", 2)]


def test_history_is_bounded():
    publisher = InMemoryOrderEventPublisher(history_size=5)
    for n in range(12):
        publisher.publish_latest(f"event_{n}", None, lambda: [])

    assert len(publisher.events) == 5
    assert [e.sequence for e in publisher.events] == [8, 9, 10, 11, 12]


def test_subscriber_gets_events_published_from_other_threads(publisher):
    async def receive_one():
        subscriber = publisher.subscribe()
        try:
            worker = threading.Thread(target=publisher.publish_latest, args=("order_created", "o-1", lambda: []))
            worker.start()
            event = await asyncio.wait_for(subscriber.get(), timeout=5)
            worker.join(5)
            return event
        finally:
            publisher.unsubscribe(subscriber)

    event = asyncio.run(receive_one())

    assert event.event == "order_created"
    assert event.order_id == "o-1"
    assert publisher.subscriber_count == 0


def test_snapshot_carries_last_published_sequence(publisher):
    publisher.publish_latest("order_created", "o-1", lambda: [])
    snapshot = publisher.current_snapshot(lambda: [])

    assert snapshot.event == "snapshot"
    assert snapshot.sequence == 1
    assert len(publisher.events) == 1


def test_redis_publisher_sends_json_to_channel():
    client = RecordingClient()
    publisher = RedisOrderEventPublisher(client=client, channel="orders:test")

    publisher.publish_latest("order_status_changed", "o-9", lambda: [])

    channel, message = client.messages[0]
    assert channel == "orders:test"
    payload = json.loads(message)
    assert payload["event"] == "order_status_changed"
    assert payload["sequence"] == 1
    assert payload["orders"] == []
