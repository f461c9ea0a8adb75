"""
Application principale FastAPI.

Ce module assemble tous les composants de l'application : middlewares, gestionnaires d'erreurs,
routes et métriques du service de thèmes 紫微斗数.

Responsabilités du module:
- Initialiser le logging structuré
- Construire l'application FastAPI avec son titre/debug
- Ajouter les middlewares (request id, métriques, timing)
- Monter les routers (santé, thèmes, configuration, analyse, métriques)
"""

from __future__ import annotations

from fastapi import FastAPI

from zwds.api.errors import install_error_handlers
from zwds.api.routes_analysis import router as analysis_router
from zwds.api.routes_charts import router as charts_router
from zwds.api.routes_health import router as health_router
from zwds.api.routes_settings import router as settings_router
from zwds.app.metrics import PrometheusMiddleware, metrics_router
from zwds.core.container import container
from zwds.core.logging import setup_logging
from zwds.middlewares.request_id import RequestIDMiddleware
from zwds.middlewares.timing import TimingMiddleware


def create_app() -> FastAPI:
    """
    Construit et retourne l'application FastAPI prête à l'usage.

    Étapes:
    - Configure le logging structuré (structlog) au niveau `LOG_LEVEL`
    - Lit les paramètres d'exécution
    - Ajoute les middlewares utiles au debug/traçabilité
    - Publie les routes et les gestionnaires d'erreurs
    """
    settings = container.settings
    setup_logging(settings.LOG_LEVEL)
    app = FastAPI(title=settings.APP_NAME, debug=settings.APP_DEBUG)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(TimingMiddleware)
    install_error_handlers(app)
    app.include_router(health_router)
    app.include_router(charts_router)
    app.include_router(settings_router)
    app.include_router(analysis_router)
    app.include_router(metrics_router)
    return app


app = create_app()
