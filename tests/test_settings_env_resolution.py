"""
Tests pour la résolution des variables d'environnement.

Ce module teste le chargement et la résolution des variables d'environnement à partir de fichiers
.env personnalisés dans les settings.
"""

from __future__ import annotations

import importlib
from pathlib import Path

CUSTOM_TEMPERATURE = 0.3


def test_settings_reads_env_file(tmp_path: Path, monkeypatch) -> None:
    """
    Teste que les settings lisent correctement les fichiers d'environnement.

    Vérifie que les variables définies dans un fichier .env personnalisé (pointé par ENV_FILE)
    sont chargées et appliquées aux settings.
    """
    env = tmp_path / ".env.custom"
    env.write_text(
        "AI_SERVICE_URL=http://ai.local\nAI_TEMPERATURE=0.3\nREQUIRE_REDIS=false\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("ENV_FILE", str(env))
    monkeypatch.delenv("AI_SERVICE_URL", raising=False)
    monkeypatch.delenv("AI_TEMPERATURE", raising=False)

    settings_mod = importlib.import_module("zwds.core.settings")
    importlib.reload(settings_mod)

    s = settings_mod.get_settings()
    assert s.AI_SERVICE_URL == "http://ai.local"
    assert s.AI_TEMPERATURE == CUSTOM_TEMPERATURE
    assert s.REQUIRE_REDIS is False


def test_environment_overrides_env_file(tmp_path: Path, monkeypatch) -> None:
    env = tmp_path / ".env.custom"
    env.write_text("AI_MODEL=from-file\n", encoding="utf-8")
    monkeypatch.setenv("ENV_FILE", str(env))
    monkeypatch.setenv("AI_MODEL", "from-env")

    settings_mod = importlib.import_module("zwds.core.settings")
    importlib.reload(settings_mod)

    assert settings_mod.get_settings().AI_MODEL == "from-env"


def test_defaults_without_ai_service(monkeypatch) -> None:
    monkeypatch.delenv("AI_SERVICE_URL", raising=False)
    monkeypatch.delenv("AI_TIMEOUT_SECONDS", raising=False)
    from zwds.core.settings import Settings

    s = Settings(_env_file=None)
    assert s.AI_SERVICE_URL is None
    assert s.AI_TIMEOUT_SECONDS is None
    assert s.AI_ENDPOINT_PATH == "/api/interpret"
