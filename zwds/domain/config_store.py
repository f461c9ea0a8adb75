"""Configuration de session persistée (`zwds-settings`).

Une configuration persistée partielle ou héritée d'une ancienne version est fusionnée champ par
champ sur les valeurs par défaut: un champ absent ou invalide reprend sa valeur par défaut sans
invalider les autres.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError

from zwds.core.constants import SETTINGS_STORAGE_KEY
from zwds.domain.entities import ChartConfig
from zwds.domain.errors import StorageWriteFailure

log = structlog.get_logger(__name__, component="config_store")


def merge_config(raw: Any, base: ChartConfig | None = None) -> ChartConfig:
    """Fusionne `raw` (clés camelCase ou snake_case) sur `base` (défauts si None)."""
    base = base or ChartConfig()
    if not isinstance(raw, dict):
        return base
    values = base.model_dump()
    for name, field in ChartConfig.model_fields.items():
        for key in (field.alias, name):
            if key is None or key not in raw:
                continue
            try:
                ChartConfig.model_validate({**values, name: raw[key]})
            except ValidationError:
                log.warning("config_field_ignored", field=name)
            else:
                values[name] = raw[key]
            break
    return ChartConfig.model_validate(values)


class ConfigStore:
    """Lecture/écriture de la configuration globale de session."""

    def __init__(self, repo, key: str = SETTINGS_STORAGE_KEY):
        """Initialise le store et charge la configuration persistée."""
        self.repo = repo
        self.key = key
        self._current = self.load()

    @property
    def current(self) -> ChartConfig:
        """Configuration en vigueur."""
        return self._current

    def load(self) -> ChartConfig:
        """Charge la configuration persistée fusionnée sur les défauts."""
        try:
            raw = self.repo.load(self.key)
        except ValueError as err:
            log.error("config_load_failed", key=self.key, error=str(err))
            raw = None
        self._current = merge_config(raw)
        return self._current

    def update(self, partial: dict[str, Any]) -> ChartConfig:
        """Fusionne `partial` sur la configuration courante puis la persiste."""
        return self.save(merge_config(partial, self._current))

    def save(self, config: ChartConfig) -> ChartConfig:
        """Persiste `config`; la configuration courante ne change qu'en cas de succès."""
        try:
            self.repo.save(self.key, config.model_dump(by_alias=True))
        except StorageWriteFailure:
            log.warning("config_write_failed", key=self.key)
            raise
        self._current = config
        return config
