import json

from clipqueue.core.config import settings
from clipqueue.services import log_publisher


class FakeRedis:
    def __init__(self, fail=False):
        self.fail = fail
        self.published = []

    def publish(self, channel, message):
        if self.fail:
            raise ConnectionError("redis unavailable")
        self.published.append((channel, json.loads(message)))


def test_publish_is_skipped_without_redis_url():
    assert log_publisher.publish_log('queue', 'INFO', 'job queued') is False


def test_queue_events_reach_the_channel(queue, monkeypatch):
    redis = FakeRedis()
    monkeypatch.setattr(settings, "REDIS_URL", "redis://localhost:6379/0")
    monkeypatch.setattr(log_publisher, "_redis_client", redis)

    job = queue.enqueue("generate_clips", {}, priority="high")

    channel, entry = redis.published[0]
    assert channel == settings.LOG_CHANNEL
    assert entry["source"] == "queue"
    assert entry["metadata"] == {
        "job_id": str(job.id), "job_type": "generate_clips", "priority": "high", "attempt": "0/3",
    }


def test_publish_failures_are_swallowed(monkeypatch):
    monkeypatch.setattr(settings, "REDIS_URL", "redis://localhost:6379/0")
    monkeypatch.setattr(log_publisher, "_redis_client", FakeRedis(fail=True))

    assert log_publisher.publish_log('render', 'ERROR', 'render failed') is False
