"""Configuration de session (`/settings`): lecture et mise à jour partielle."""

from typing import Any

from fastapi import APIRouter, Body

from zwds.core.container import container
from zwds.domain.entities import ChartConfig

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=ChartConfig, response_model_by_alias=True)
def get_config():
    """Configuration courante, fusionnée sur les défauts."""
    return container.config_store.current


@router.put("", response_model=ChartConfig, response_model_by_alias=True)
def update_config(partial: dict[str, Any] = Body(...)):  # noqa: B008
    """Fusionne les champs fournis sur la configuration courante; champs invalides ignorés."""
    return container.config_store.update(partial)
