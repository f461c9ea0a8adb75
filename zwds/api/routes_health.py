"""
Endpoint de santé pour vérifier la disponibilité de l'API et du backend.

Expose `/health` pour signaler l'état général de l'application, du stockage et de la
configuration du service d'interprétation.
"""


from fastapi import APIRouter

from zwds.core.container import container

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    """Vérifie la disponibilité de l'API et le backend de stockage."""
    return {
        "status": "ok",
        "storage": getattr(container, "storage_backend", "unknown"),
        "redis_url": bool(container.settings.REDIS_URL),
        "ai_configured": bool(container.settings.AI_SERVICE_URL),
    }
