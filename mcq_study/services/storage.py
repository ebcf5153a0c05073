"""
Topic / API-key persistence.

- `RedisTopicStore` is the remote backend (REDIS_URL).
- `JsonFileTopicStore` is the local backend (LOCAL_STORE_PATH); `InMemoryTopicStore`
  is the same thing without a file, used by tests and as the last resort.
- `SyncedTopicStore` tries the remote first, mirrors every successful result into
  the local store, and degrades to local when the remote raises.

Records are written whole: last write wins.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

import redis

from mcq_study.models.schemas import ApiKeys, Question, Topic
from mcq_study.utils.errors import StoreUnavailableError
from mcq_study.utils.observability import log_event
from mcq_study.utils.settings import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CACHED_STORE: "BaseTopicStore | None" = None
_CACHED_STORE_CONFIG: tuple | None = None


class BaseTopicStore:
    def get_topics(self, user_id: str) -> List[Topic]:
        raise NotImplementedError

    def get_topic(self, topic_id: str) -> Optional[Topic]:
        raise NotImplementedError

    def add_topic(self, topic: Topic) -> Topic:
        raise NotImplementedError

    def update_topic(
        self,
        topic_id: str,
        *,
        name: Optional[str] = None,
        questions: Optional[List[Question]] = None,
    ) -> Topic:
        raise NotImplementedError

    def delete_topic(self, topic_id: str) -> None:
        raise NotImplementedError

    def get_api_keys(self, user_id: str) -> Optional[ApiKeys]:
        raise NotImplementedError

    def save_api_keys(self, keys: ApiKeys) -> ApiKeys:
        raise NotImplementedError


def _apply_update(topic: Topic, name: Optional[str], questions: Optional[List[Question]]) -> Topic:
    update: Dict[str, Any] = {}
    if name is not None:
        update["name"] = name
    if questions is not None:
        update["questions"] = list(questions)
    return topic.model_copy(update=update) if update else topic


class InMemoryTopicStore(BaseTopicStore):
    def __init__(self):
        self.topics: dict[str, Topic] = {}
        self.api_keys: dict[str, ApiKeys] = {}
        self._lock = threading.Lock()

    def _changed(self) -> None:
        """Hook for subclasses that persist the maps."""

    def get_topics(self, user_id: str) -> List[Topic]:
        return [t for t in self.topics.values() if t.user_id == user_id]

    def get_topic(self, topic_id: str) -> Optional[Topic]:
        return self.topics.get(topic_id)

    def add_topic(self, topic: Topic) -> Topic:
        with self._lock:
            self.topics[topic.id] = topic
            self._changed()
        return topic

    def update_topic(self, topic_id, *, name=None, questions=None) -> Topic:
        with self._lock:
            current = self.topics.get(topic_id)
            if current is None:
                raise KeyError(topic_id)
            updated = _apply_update(current, name, questions)
            self.topics[topic_id] = updated
            self._changed()
        return updated

    def delete_topic(self, topic_id: str) -> None:
        with self._lock:
            self.topics.pop(topic_id, None)
            self._changed()

    def get_api_keys(self, user_id: str) -> Optional[ApiKeys]:
        return self.api_keys.get(user_id)

    def save_api_keys(self, keys: ApiKeys) -> ApiKeys:
        with self._lock:
            self.api_keys[keys.user_id] = keys
            self._changed()
        return keys


class JsonFileTopicStore(InMemoryTopicStore):
    """Local backend: the whole store is one JSON document rewritten on each write."""

    def __init__(self, path: str | os.PathLike):
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Local store %s unreadable, starting empty: %s", self.path, e)
            return
        for raw in data.get("topics") or []:
            topic = Topic.model_validate(raw)
            self.topics[topic.id] = topic
        for raw in data.get("apiKeys") or []:
            keys = ApiKeys.model_validate(raw)
            self.api_keys[keys.user_id] = keys

    def _changed(self) -> None:
        payload = {
            "topics": [t.to_record() for t in self.topics.values()],
            "apiKeys": [k.to_record() for k in self.api_keys.values()],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)


class RedisTopicStore(BaseTopicStore):
    def __init__(self, url: Optional[str] = None, prefix: str = "", *, client: Any = None):
        if client is None:
            if not url:
                raise ValueError("RedisTopicStore needs a url or a client")
            client = redis.Redis.from_url(url)
        self.client = client
        self.prefix = prefix

    def _k(self, *parts: str) -> str:
        return self.prefix + ":".join(parts)

    def _user_index(self, user_id: str) -> str:
        return self._k("user", user_id, "topics")

    def _read_topic(self, topic_id: str) -> Optional[Topic]:
        data = self.client.get(self._k("topic", topic_id))
        if data is None:
            return None
        return Topic.model_validate(json.loads(data))

    def _write_topic(self, topic: Topic) -> None:
        self.client.set(self._k("topic", topic.id), json.dumps(topic.to_record(), ensure_ascii=False))

    def get_topics(self, user_id: str) -> List[Topic]:
        topics: List[Topic] = []
        for raw_id in self.client.lrange(self._user_index(user_id), 0, -1) or []:
            topic_id = raw_id.decode("utf-8") if isinstance(raw_id, bytes) else str(raw_id)
            topic = self._read_topic(topic_id)
            if topic is not None:
                topics.append(topic)
        return topics

    def get_topic(self, topic_id: str) -> Optional[Topic]:
        return self._read_topic(topic_id)

    def add_topic(self, topic: Topic) -> Topic:
        self._write_topic(topic)
        self.client.lrem(self._user_index(topic.user_id), 0, topic.id)
        self.client.rpush(self._user_index(topic.user_id), topic.id)
        return topic

    def update_topic(self, topic_id, *, name=None, questions=None) -> Topic:
        current = self._read_topic(topic_id)
        if current is None:
            raise KeyError(topic_id)
        updated = _apply_update(current, name, questions)
        self._write_topic(updated)
        return updated

    def delete_topic(self, topic_id: str) -> None:
        current = self._read_topic(topic_id)
        self.client.delete(self._k("topic", topic_id))
        if current is not None:
            self.client.lrem(self._user_index(current.user_id), 0, topic_id)

    def get_api_keys(self, user_id: str) -> Optional[ApiKeys]:
        data = self.client.get(self._k("apikeys", user_id))
        if data is None:
            return None
        return ApiKeys.model_validate(json.loads(data))

    def save_api_keys(self, keys: ApiKeys) -> ApiKeys:
        self.client.set(self._k("apikeys", keys.user_id), json.dumps(keys.to_record()))
        return keys


class SyncedTopicStore(BaseTopicStore):
    """
    Remote first, local mirror; any remote failure degrades to local.

    Topics written while the remote was down exist only locally. Reads that
    miss on the remote fall back to the local copy and push it back up, so a
    later merge appends to it instead of replacing it.
    """

    def __init__(self, remote: BaseTopicStore, local: BaseTopicStore):
        self.remote = remote
        self.local = local

    def _try_remote(self, op: str, call: Callable[[], T]) -> tuple[bool, Optional[T]]:
        try:
            return True, call()
        except KeyError:
            raise
        except Exception as e:
            log_event(logger, "store_fallback", level="warning", op=op, error=str(e))
            return False, None

    def _mirror_topic(self, topic: Topic) -> None:
        if self.local.get_topic(topic.id) is None:
            self.local.add_topic(topic)
        else:
            self.local.update_topic(topic.id, name=topic.name, questions=topic.questions)

    def _push_local(self, topic: Topic) -> None:
        ok, _ = self._try_remote("push_local", lambda: self.remote.add_topic(topic))
        if ok:
            log_event(logger, "store_resynced", topic_id=topic.id, questions=len(topic.questions))

    def get_topics(self, user_id: str) -> List[Topic]:
        ok, topics = self._try_remote("get_topics", lambda: self.remote.get_topics(user_id))
        if not ok:
            return self.local.get_topics(user_id)
        remote_ids = {t.id for t in topics}
        local_only = [t for t in self.local.get_topics(user_id) if t.id not in remote_ids]
        for t in topics:
            self._mirror_topic(t)
        for t in local_only:
            self._push_local(t)
        return list(topics) + local_only

    def get_topic(self, topic_id: str) -> Optional[Topic]:
        ok, topic = self._try_remote("get_topic", lambda: self.remote.get_topic(topic_id))
        if not ok:
            return self.local.get_topic(topic_id)
        if topic is None:
            topic = self.local.get_topic(topic_id)
            if topic is not None:
                self._push_local(topic)
            return topic
        self._mirror_topic(topic)
        return topic

    def add_topic(self, topic: Topic) -> Topic:
        ok, saved = self._try_remote("add_topic", lambda: self.remote.add_topic(topic))
        self._mirror_topic(saved if ok else topic)
        return saved if ok else topic

    def update_topic(self, topic_id, *, name=None, questions=None) -> Topic:
        try:
            ok, updated = self._try_remote(
                "update_topic",
                lambda: self.remote.update_topic(topic_id, name=name, questions=questions),
            )
        except KeyError:
            # Unknown remotely: update the local copy (KeyError if absent there too) and push it up.
            updated = self.local.update_topic(topic_id, name=name, questions=questions)
            self._push_local(updated)
            return updated
        if ok:
            self._mirror_topic(updated)
            return updated
        return self.local.update_topic(topic_id, name=name, questions=questions)

    def delete_topic(self, topic_id: str) -> None:
        # Local first so the topic disappears even when the remote is down.
        self.local.delete_topic(topic_id)
        self._try_remote("delete_topic", lambda: self.remote.delete_topic(topic_id))

    def get_api_keys(self, user_id: str) -> Optional[ApiKeys]:
        ok, keys = self._try_remote("get_api_keys", lambda: self.remote.get_api_keys(user_id))
        if not ok:
            return self.local.get_api_keys(user_id)
        if keys is not None:
            self.local.save_api_keys(keys)
        return keys

    def save_api_keys(self, keys: ApiKeys) -> ApiKeys:
        ok, saved = self._try_remote("save_api_keys", lambda: self.remote.save_api_keys(keys))
        self.local.save_api_keys(saved if ok else keys)
        return saved if ok else keys


def merge_topic(store: BaseTopicStore, topic: Topic) -> Topic:
    """Append `topic.questions` to the stored topic with the same id, or add it as new."""
    existing = store.get_topic(topic.id)
    if existing is None:
        return store.add_topic(topic)
    return store.update_topic(existing.id, questions=list(existing.questions) + list(topic.questions))


def get_topic_store() -> BaseTopicStore:
    global _CACHED_STORE, _CACHED_STORE_CONFIG
    settings = get_settings()
    redis_url = settings.redis_url
    config = (redis_url, settings.store_prefix, settings.require_remote_store, settings.local_store_path)
    if _CACHED_STORE is not None and _CACHED_STORE_CONFIG == config:
        return _CACHED_STORE

    local: BaseTopicStore = (
        JsonFileTopicStore(settings.local_store_path)
        if settings.local_store_path
        else InMemoryTopicStore()
    )
    store: BaseTopicStore = local
    if redis_url:
        try:
            remote = RedisTopicStore(redis_url, prefix=settings.store_prefix)
            remote.client.ping()
            store = SyncedTopicStore(remote, local)
        except Exception as e:
            if settings.require_remote_store:
                raise StoreUnavailableError(f"REQUIRE_REMOTE_STORE=1 but Redis ping failed: {e}") from e
            logger.warning("Redis configured but unavailable, using local store: %s", e)
    elif settings.require_remote_store:
        raise StoreUnavailableError("REQUIRE_REMOTE_STORE=1 but REDIS_URL is not set")

    _CACHED_STORE = store
    _CACHED_STORE_CONFIG = config
    return store
