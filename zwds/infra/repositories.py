"""
Repositories pour le stockage durable des documents JSON.

Ce module fournit des dépôts clé → document JSON, avec des versions en mémoire et Redis. Le
`ChartStore` et le `ConfigStore` y lisent/écrivent explicitement via `load`/`save`; un refus
d'écriture est toujours remonté sous forme de `StorageWriteFailure`.
"""

import contextlib
import json
import uuid
from collections.abc import Callable
from typing import Any

import redis
import structlog

from zwds.domain.errors import StorageWriteFailure

CHANGES_CHANNEL = "zwds:storage-changed"


def change_message(origin: str, key: str) -> str:
    """Annonce de changement publiée après une écriture."""
    return json.dumps({"origin": origin, "key": key})


def parse_change_message(data: str) -> tuple[str | None, str]:
    """Retourne (origine, clé); une annonce non JSON est traitée comme une clé sans origine."""
    try:
        payload = json.loads(data)
    except ValueError:
        return None, data
    if not isinstance(payload, dict) or "key" not in payload:
        return None, data
    return payload.get("origin"), payload["key"]


class InMemoryDocumentRepo:
    """
    Dépôt de documents en mémoire (utilisé pour dev/tests).

    Stocke les documents sérialisés dans un dict local, non persistant. `max_bytes` simule un quota
    de stockage: une écriture qui le dépasse est refusée et l'état précédent conservé.
    """

    def __init__(self, max_bytes: int | None = None):
        """Initialise une base mémoire vide."""
        self._db: dict[str, str] = {}
        self._listeners: list[Callable[[str], None]] = []
        self.max_bytes = max_bytes

    def load(self, key: str) -> Any | None:
        """Retourne le document désérialisé, ou None s'il est absent."""
        raw = self._db.get(key)
        return json.loads(raw) if raw else None

    def save(self, key: str, value: Any) -> None:
        """Sérialise et stocke le document sous `key`."""
        raw = json.dumps(value, ensure_ascii=False)
        if self.max_bytes is not None:
            others = sum(len(v.encode("utf-8")) for k, v in self._db.items() if k != key)
            if others + len(raw.encode("utf-8")) > self.max_bytes:
                raise StorageWriteFailure(key, "storage quota exceeded")
        self._db[key] = raw

    def put_raw(self, key: str, raw: str) -> None:
        """Écrit une valeur brute, comme le ferait un autre écrivain partageant le stockage.

        Les abonnés sont notifiés comme pour un changement externe.
        """
        self._db[key] = raw
        for listener in list(self._listeners):
            listener(key)

    def subscribe(self, listener: Callable[[str], None]) -> None:
        """Abonne `listener` aux changements externes (clé modifiée)."""
        self._listeners.append(listener)


class RedisDocumentRepo:
    """Dépôt de documents adossé à Redis (une clé par document).

    Chaque écriture réussie est annoncée sur `zwds:storage-changed` (`{"origin", "key"}`) pour que
    les autres processus rechargent intégralement leur vue (dernier écrivain gagnant, pas de
    fusion). Un processus ignore ses propres annonces: sa vue mémoire est déjà à jour.
    """

    def __init__(self, url: str):
        """Crée un client Redis à partir de l'URL fournie."""
        self.client = redis.Redis.from_url(url, decode_responses=True)
        self.origin = uuid.uuid4().hex
        self._log = structlog.get_logger(__name__).bind(component="redis_document_repo")

    def load(self, key: str) -> Any | None:
        """Charge et désérialise le document `key`, si présent."""
        raw = self.client.get(key)
        return json.loads(raw) if raw else None

    def save(self, key: str, value: Any) -> None:
        """Sérialise en JSON et stocke le document sous `key`."""
        try:
            self.client.set(key, json.dumps(value, ensure_ascii=False))
        except redis.RedisError as err:
            self._log.warning("storage_write_failed", key=key, error=str(err))
            raise StorageWriteFailure(key, str(err)) from err
        # Notification best-effort
        with contextlib.suppress(redis.RedisError):
            self.client.publish(CHANGES_CHANNEL, change_message(self.origin, key))

    def subscribe(self, listener: Callable[[str], None]):
        """Abonne `listener` aux changements publiés par les autres processus.

        Retourne le thread d'écoute (démon) de redis-py.
        """
        pubsub = self.client.pubsub(ignore_subscribe_messages=True)

        def _handle(message: dict) -> None:
            origin, key = parse_change_message(message["data"])
            if origin == self.origin:
                return
            listener(key)

        pubsub.subscribe(**{CHANGES_CHANNEL: _handle})
        return pubsub.run_in_thread(sleep_time=1.0, daemon=True)
