"""Définition et chargement des paramètres de configuration applicative.

Objectif du module
------------------
- Centraliser les paramètres (env/.env) via Pydantic Settings
- Résoudre le fichier `.env` à utiliser selon la stratégie: ENV_FILE > .env.{APP_ENV} > .env
"""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from zwds.core.constants import DEFAULT_ENDPOINT_PATH, DEFAULT_TEMPERATURE

# Détermination du fichier .env à utiliser avec priorité:
# 1) ENV_FILE (chemin explicite)
# 2) .env.{APP_ENV} si présent
# 3) .env (défaut)
_cwd = Path.cwd()
_env_file_from_env = os.getenv("ENV_FILE")
if _env_file_from_env:
    _ENV_FILE_PATH = _env_file_from_env
else:
    _app_env = os.getenv("APP_ENV", "dev")
    _candidate_specific = _cwd / f".env.{_app_env}"
    _candidate_default = _cwd / ".env"
    if _candidate_specific.exists():
        _ENV_FILE_PATH = _candidate_specific
    else:
        _ENV_FILE_PATH = _candidate_default


class Settings(BaseSettings):
    """Modèle de configuration chargé depuis l'environnement et .env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )
    APP_NAME: str = "zwds-backend"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = True
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 3088
    LOG_LEVEL: str = "DEBUG"

    # Stockage durable (Redis si configuré, mémoire sinon)
    REDIS_URL: str | None = None
    REQUIRE_REDIS: bool = False

    # Service d'interprétation (frontière externe)
    AI_SERVICE_URL: str | None = None
    AI_ENDPOINT_PATH: str = DEFAULT_ENDPOINT_PATH
    AI_API_KEY: str | None = None
    AI_MODEL: str | None = None
    AI_TEMPERATURE: float = DEFAULT_TEMPERATURE
    # Pas de timeout par défaut: l'appel n'échoue que sur son propre rejet
    AI_TIMEOUT_SECONDS: float | None = None

    # Nombre maximal de vues d'analyse conservées en mémoire
    ANALYSIS_MAX_VIEWS: int = 256


def get_settings() -> Settings:
    """Construit et retourne la configuration de l'application."""
    return Settings()
