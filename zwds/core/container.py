"""
Conteneur d'injection de dépendances et configuration application.

Instancie les composants centraux (settings, dépôt durable, stores, moteur astro, client du
service d'interprétation, vues d'analyse) et expose un singleton `container` utilisé par le reste
de l'application.
"""

import structlog

from zwds.core.settings import Settings, get_settings
from zwds.domain.analysis_orchestrator import AnalysisOrchestrator, AnalysisRegistry
from zwds.domain.chart_store import ChartStore
from zwds.domain.config_store import ConfigStore
from zwds.domain.entities import BirthInput
from zwds.infra.astro.internal_astro import InternalAstroEngine
from zwds.infra.llm.interpret_client import InterpretClient
from zwds.infra.repositories import InMemoryDocumentRepo, RedisDocumentRepo

log = structlog.get_logger(__name__, component="container")


class Container:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.build()

    def _select_repo(self):
        if self.settings.REDIS_URL:
            try:
                repo = RedisDocumentRepo(self.settings.REDIS_URL)
                repo.client.ping()
                self.storage_backend = "redis"
                return repo
            except Exception as err:
                if self.settings.REQUIRE_REDIS:
                    raise RuntimeError("Redis required but unavailable") from err
                log.warning("redis_unavailable_fallback_memory", error=str(err))
                self.storage_backend = "memory-fallback"
                return InMemoryDocumentRepo()
        if self.settings.REQUIRE_REDIS:
            raise RuntimeError("Redis required but REDIS_URL not set")
        self.storage_backend = "memory"
        return InMemoryDocumentRepo()

    def build(self, repo=None, client=None, engine=None, clock=None) -> None:
        """(Re)construit les composants; les arguments remplacent les défauts (tests)."""
        if repo is None:
            repo = self._select_repo()
        else:
            self.storage_backend = "custom"
        self.repo = repo
        self.chart_store = ChartStore(repo)
        self.config_store = ConfigStore(repo)
        self.astro = engine or InternalAstroEngine()
        self.interpret_client = client or InterpretClient.from_settings(self.settings)
        self._clock = clock
        self.analyses = AnalysisRegistry(
            self._new_view, max_views=self.settings.ANALYSIS_MAX_VIEWS
        )
        self.chart_store.on_delete(self.analyses.forget_record)
        self._listener = repo.subscribe(self.chart_store.on_storage_changed)

    def _new_view(self, birth: BirthInput) -> AnalysisOrchestrator:
        return AnalysisOrchestrator(
            birth,
            store=self.chart_store,
            engine=self.astro,
            client=self.interpret_client,
            config_store=self.config_store,
            temperature=self.settings.AI_TEMPERATURE,
            clock=self._clock,
        )


container = Container()
