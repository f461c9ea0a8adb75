"""Collection ordonnée et persistée des thèmes enregistrés.

Objectif du module
------------------
- Conserver une vue mémoire (la plus récente en tête) adossée à un dépôt durable injecté.
- Indexer les enregistrements par clé d'identité (au plus un enregistrement par identité).
- Rattacher de façon idempotente une interprétation générée au bon enregistrement.

Toutes les opérations sont synchrones et ne contiennent aucun point de suspension. Chaque séquence
lecture-modification-écriture (et chaque rechargement) s'exécute sous un verrou réentrant du store:
les routes synchrones tournent dans le pool de threads de FastAPI et l'écoute Redis dans son propre
thread.
Une écriture durable refusée laisse la vue mémoire et l'état durable inchangés.
"""

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from zwds.app.metrics import CHART_STORE_WRITES
from zwds.core.constants import CHARTS_STORAGE_KEY, DISPLAY_NAME_SUFFIX, UNNAMED_DISPLAY_NAME
from zwds.domain.entities import BirthInput, ChartRecord, Interpretation
from zwds.domain.errors import DuplicateRecordId, StorageWriteFailure
from zwds.domain.identity import (
    derive_solar_instant,
    identity_key,
    record_identity_key,
    same_chart,
)

# Champs qu'un patch ne peut jamais modifier
_IMMUTABLE_FIELDS = frozenset({"id", "created_at", "birth", "solar_instant"})


def _now_ms() -> int:
    return int(time.time() * 1000)


def display_name_for(birth: BirthInput) -> str:
    """Nom d'affichage d'un thème: `<nom>-命盘`, ou `未命名命盘` sans nom."""
    return f"{birth.name}{DISPLAY_NAME_SUFFIX}" if birth.name else UNNAMED_DISPLAY_NAME


class ChartStore:
    """Store des thèmes, lecture en mémoire et écriture explicite vers le dépôt.

    Paramètres:
    - repo: dépôt durable exposant `load(key)` et `save(key, value)`.
    - key: clé du document durable (`zwds-saved-charts`).
    - clock: horloge en millisecondes (injectable pour les tests).
    - id_factory: générateur d'identifiants opaques, jamais réutilisés.
    """

    def __init__(
        self,
        repo,
        key: str = CHARTS_STORAGE_KEY,
        clock: Callable[[], int] | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        """Initialise le store et charge l'état durable."""
        self.repo = repo
        self.key = key
        self._clock = clock or _now_ms
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)
        self._records: list[ChartRecord] = []
        self._index: dict[str, list[str]] = {}
        self._lock = threading.RLock()
        self._delete_listeners: list[Callable[[str], None]] = []
        self._log = structlog.get_logger(__name__).bind(component="chart_store")
        self.reload()

    # -------------------- Lecture --------------------

    def list(self) -> list[ChartRecord]:
        """Retourne les thèmes, le plus récent en tête."""
        return list(self._records)

    def get(self, record_id: str) -> ChartRecord | None:
        """Retourne un thème par id, ou None s'il est absent."""
        return next((r for r in self._records if r.id == record_id), None)

    def find_by_identity(
        self, birth: BirthInput, solar_instant: datetime | None = None
    ) -> ChartRecord | None:
        """Recherche directe par clé d'identité; le doublon le plus récent gagne."""
        instant = solar_instant or derive_solar_instant(birth)
        with self._lock:
            for record_id in self._index.get(identity_key(birth, instant), []):
                record = self.get(record_id)
                if record is not None and same_chart(record, birth, instant):
                    return record
        return None

    # -------------------- Écriture --------------------

    def new_record(
        self,
        birth: BirthInput,
        solar_instant: datetime | None = None,
        interpretation: Interpretation | None = None,
    ) -> ChartRecord:
        """Construit (sans l'insérer) un enregistrement neuf pour `birth`."""
        return ChartRecord(
            id=self._new_id(),
            display_name=display_name_for(birth),
            created_at=self._clock(),
            birth=birth,
            solar_instant=solar_instant or derive_solar_instant(birth),
            interpretation=interpretation,
        )

    def insert(self, record: ChartRecord) -> None:
        """Ajoute un thème en tête; n'écrase jamais un id existant."""
        with self._lock:
            if self.get(record.id) is not None:
                raise DuplicateRecordId(f"record id already exists: {record.id}")
            self._commit([record, *self._records], op="insert")

    def save_chart(self, birth: BirthInput) -> ChartRecord:
        """Sauvegarde explicite: crée toujours un nouvel enregistrement."""
        record = self.new_record(birth)
        self.insert(record)
        return record

    def find_or_create(self, birth: BirthInput) -> tuple[ChartRecord, bool]:
        """Retourne le thème correspondant à `birth`, en le créant si besoin.

        Retour: (enregistrement, créé?).
        """
        instant = derive_solar_instant(birth)
        with self._lock:
            existing = self.find_by_identity(birth, instant)
            if existing is not None:
                return existing, False
            record = self.new_record(birth, instant)
            self.insert(record)
        return record, True

    def delete_by_id(self, record_id: str) -> None:
        """Supprime le thème s'il existe; sans effet ni erreur sinon.

        Les écouteurs de suppression sont prévenus après l'écriture durable.
        """
        with self._lock:
            if self.get(record_id) is None:
                return
            self._commit([r for r in self._records if r.id != record_id], op="delete")
        for listener in list(self._delete_listeners):
            listener(record_id)

    def on_delete(self, listener: Callable[[str], None]) -> None:
        """Abonne `listener` (reçoit l'id) aux suppressions de ce store."""
        self._delete_listeners.append(listener)

    def update(self, record_id: str, patch: dict[str, Any]) -> bool:
        """Applique un patch champ à champ; retourne False si l'id est inconnu.

        `id`, `created_at` et l'identité (`birth`, `solar_instant`) ne sont jamais modifiables.
        """
        forbidden = _IMMUTABLE_FIELDS.intersection(patch)
        if forbidden:
            raise ValueError(f"immutable fields in patch: {sorted(forbidden)}")
        with self._lock:
            for position, record in enumerate(self._records):
                if record.id == record_id:
                    records = list(self._records)
                    records[position] = record.model_copy(update=patch)
                    self._commit(records, op="update")
                    return True
        return False

    def attach_interpretation(
        self,
        birth: BirthInput,
        content: str,
        target_record_id: str | None = None,
    ) -> ChartRecord:
        """Rattache (ou remplace) l'interprétation sur exactement un enregistrement.

        Priorité:
        1) l'enregistrement cible du contexte de requête, s'il existe encore;
        2) sinon l'enregistrement de même identité;
        3) sinon un nouvel enregistrement, créé avec l'interprétation déjà renseignée.
        """
        interpretation = Interpretation(content=content, produced_at=self._clock())
        patch = {"interpretation": interpretation}
        instant = derive_solar_instant(birth)

        with self._lock:
            if target_record_id and self.update(target_record_id, patch):
                return self.get(target_record_id)  # type: ignore[return-value]

            matched = self.find_by_identity(birth, instant)
            if matched is not None:
                self.update(matched.id, patch)
                return self.get(matched.id)  # type: ignore[return-value]

            record = self.new_record(birth, instant, interpretation=interpretation)
            self.insert(record)
        return record

    # -------------------- Synchronisation --------------------

    def reload(self) -> None:
        """Recharge intégralement la vue mémoire depuis le dépôt durable.

        Lecture et remplacement se font sous le verrou du store: un rechargement ne peut pas
        s'intercaler dans une écriture et réinstaller un instantané antérieur à celle-ci.
        """
        with self._lock:
            try:
                docs = self.repo.load(self.key) or []
            except ValueError as err:
                self._log.error("charts_load_failed", key=self.key, error=str(err))
                docs = []
            records: list[ChartRecord] = []
            for doc in docs:
                try:
                    records.append(ChartRecord.from_document(doc))
                except (KeyError, TypeError, ValueError) as err:
                    self._log.warning("chart_document_skipped", error=str(err))
            self._replace(records)

    def on_storage_changed(self, key: str) -> None:
        """Signal de changement externe: recharge si la clé concerne ce store."""
        if key == self.key:
            self._log.debug("storage_changed_reload", key=key)
            self.reload()

    # -------------------- Interne --------------------

    def _commit(self, records: list[ChartRecord], op: str) -> None:
        try:
            self.repo.save(self.key, [r.to_document() for r in records])
        except StorageWriteFailure:
            CHART_STORE_WRITES.labels(op=op, result="failed").inc()
            self._log.warning("charts_write_failed", op=op, count=len(records))
            raise
        CHART_STORE_WRITES.labels(op=op, result="ok").inc()
        self._replace(records)

    def _replace(self, records: list[ChartRecord]) -> None:
        index: dict[str, list[str]] = {}
        for record in records:
            index.setdefault(record_identity_key(record), []).append(record.id)
        self._records = records
        self._index = index
