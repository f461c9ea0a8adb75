"""Tests des dépôts de documents (mémoire et Redis simulé)."""

from __future__ import annotations

import json
from unittest.mock import Mock, patch

import pytest
import redis

from zwds.domain.errors import StorageWriteFailure
from zwds.infra.repositories import (
    CHANGES_CHANNEL,
    InMemoryDocumentRepo,
    RedisDocumentRepo,
    change_message,
    parse_change_message,
)

KEY = "zwds-saved-charts"
REDIS_URL = "redis://localhost:6379/0"


def test_memory_repo_load_missing_key_is_none() -> None:
    assert InMemoryDocumentRepo().load(KEY) is None


def test_memory_repo_quota_rejects_and_keeps_previous() -> None:
    """Teste qu'une écriture au-delà du quota est refusée sans écraser l'existant."""
    repo = InMemoryDocumentRepo(max_bytes=64)
    repo.save(KEY, [1])
    with pytest.raises(StorageWriteFailure) as exc_info:
        repo.save(KEY, ["x" * 100])
    assert exc_info.value.key == KEY
    assert repo.load(KEY) == [1]


def test_memory_repo_put_raw_notifies_subscribers() -> None:
    repo = InMemoryDocumentRepo()
    seen: list[str] = []
    repo.subscribe(seen.append)
    repo.put_raw(KEY, "[]")
    repo.save(KEY, [])
    assert seen == [KEY]


@pytest.fixture
def redis_client():
    client = Mock()
    client.get.return_value = None
    with patch("redis.Redis.from_url", return_value=client) as from_url:
        yield client
        from_url.assert_called_once_with(REDIS_URL, decode_responses=True)


def test_redis_repo_save_writes_json_and_publishes(redis_client) -> None:
    """Teste la sérialisation JSON (CJK conservé) et l'annonce du changement."""
    repo = RedisDocumentRepo(REDIS_URL)
    repo.save(KEY, [{"displayName": "张三-命盘"}])

    redis_client.set.assert_called_once_with(KEY, '[{"displayName": "张三-命盘"}]')
    redis_client.publish.assert_called_once_with(
        CHANGES_CHANNEL, change_message(repo.origin, KEY)
    )


def test_redis_repo_load(redis_client) -> None:
    redis_client.get.return_value = json.dumps({"algorithm": "default"})
    assert RedisDocumentRepo(REDIS_URL).load("zwds-settings") == {"algorithm": "default"}


def test_redis_repo_write_error_becomes_storage_failure(redis_client) -> None:
    """Teste qu'une erreur Redis devient StorageWriteFailure, sans notification."""
    redis_client.set.side_effect = redis.ConnectionError("down")
    with pytest.raises(StorageWriteFailure):
        RedisDocumentRepo(REDIS_URL).save(KEY, [])
    redis_client.publish.assert_not_called()


def test_redis_repo_publish_error_is_tolerated(redis_client) -> None:
    redis_client.publish.side_effect = redis.ConnectionError("down")
    RedisDocumentRepo(REDIS_URL).save(KEY, [])
    redis_client.set.assert_called_once()


def test_redis_repo_subscribe_dispatches_changed_key(redis_client) -> None:
    """Teste que les messages du canal sont relayés à l'abonné."""
    pubsub = redis_client.pubsub.return_value
    seen: list[str] = []

    RedisDocumentRepo(REDIS_URL).subscribe(seen.append)

    handler = pubsub.subscribe.call_args.kwargs[CHANGES_CHANNEL]
    handler({"type": "message", "channel": CHANGES_CHANNEL, "data": change_message("other", KEY)})
    assert seen == [KEY]
    pubsub.run_in_thread.assert_called_once()


def test_redis_repo_ignores_its_own_announcements(redis_client) -> None:
    """Teste qu'un processus ne recharge pas sur ses propres écritures."""
    pubsub = redis_client.pubsub.return_value
    seen: list[str] = []
    repo = RedisDocumentRepo(REDIS_URL)
    repo.subscribe(seen.append)

    handler = pubsub.subscribe.call_args.kwargs[CHANGES_CHANNEL]
    message = change_message(repo.origin, KEY)
    handler({"type": "message", "channel": CHANGES_CHANNEL, "data": message})
    assert seen == []


def test_each_repo_has_its_own_origin() -> None:
    with patch("redis.Redis.from_url", return_value=Mock()):
        assert RedisDocumentRepo(REDIS_URL).origin != RedisDocumentRepo(REDIS_URL).origin


def test_parse_change_message_accepts_bare_key() -> None:
    assert parse_change_message(KEY) == (None, KEY)
    assert parse_change_message(change_message("abc", KEY)) == ("abc", KEY)
