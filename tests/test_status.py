from datetime import datetime, timedelta, timezone

from spark_proxy.status import StatusStore, UpstreamStatus


def test_initial_status():
    store = StatusStore()
    assert store.current == UpstreamStatus(is_healthy=False, last_check=None, retry_count=0)
    assert store.current.to_dict() == {"isHealthy": False, "lastCheck": None, "retryCount": 0}


def test_chat_failures_count_and_success_resets():
    store = StatusStore()
    for _ in range(3):
        store.record_chat_failure()
    assert store.current.retry_count == 3
    assert store.current.is_healthy is False

    store.record_chat_success()
    assert store.current.retry_count == 0
    assert store.current.is_healthy is True


def test_failure_without_health_verdict_keeps_flag():
    store = StatusStore()
    store.record_probe(True)
    store.record_chat_failure()
    assert store.current.is_healthy is True
    store.record_chat_failure(is_healthy=False)
    assert store.current.is_healthy is False
    assert store.current.retry_count == 2


def test_probe_never_touches_retry_count():
    store = StatusStore()
    store.record_chat_failure()
    store.record_probe(True)
    store.record_probe(False)
    assert store.current.retry_count == 1
    assert store.current.is_healthy is False


def test_updates_replace_the_whole_value():
    store = StatusStore()
    before = store.current
    store.record_probe(True)
    assert before.is_healthy is False
    assert store.current is not before


def test_last_check_never_moves_backwards():
    store = StatusStore()
    future = datetime.now(timezone.utc) + timedelta(hours=1)
    store._status = UpstreamStatus(is_healthy=True, last_check=future, retry_count=0)
    store.record_chat_failure()
    assert store.current.last_check == future


def test_last_check_is_serialized_as_iso():
    store = StatusStore()
    store.record_probe(True)
    last_check = store.current.to_dict()["lastCheck"]
    assert datetime.fromisoformat(last_check) == store.current.last_check
