"""Orchestrateur d'analyse d'un thème par le service d'interprétation.

Ce module coordonne, pour une vue de thème, le cycle complet d'une analyse: rattachement à un
enregistrement du store (trouver ou créer), construction du document structuré, échange avec le
service d'interprétation et mise en cache du résultat sur l'enregistrement.
"""

from __future__ import annotations

import itertools
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import structlog

from zwds.app.metrics import ANALYSIS_LATENCY, ANALYSIS_REQUESTS
from zwds.core.constants import DEFAULT_TEMPERATURE
from zwds.domain import payload_builder
from zwds.domain.astrolabe import AstroEngine
from zwds.domain.chart_store import ChartStore
from zwds.domain.config_store import ConfigStore
from zwds.domain.entities import BirthInput, TargetPalaceSelection
from zwds.domain.errors import (
    AlreadyInFlight,
    ConfigurationMissing,
    NetworkOrServiceFailure,
    StorageWriteFailure,
)
from zwds.domain.identity import identity_key
from zwds.infra.llm.base import InterpretationService

SYSTEM_PROMPT = "\n".join(
    [
        "你是紫微斗数解盘助手，输出中文 Markdown。",
        "不要写前言或开场说明，直接进入解读内容。",
        "避免绝对化断言，使用“倾向/可能/易于”等表述。",
        "严格按顺序输出以下章节（使用二级标题）：",
        "1) 找命宫",
        "2) 看主星",
        "3) 看三方四正",
        "4) 看福德宫",
        "5) 看生年四化",
        "6) 看宫干四化",
        "7) 性格推演",
        "8) 目标宫位（命宫固定+手动补充）",
        "9) 运限（大限/流年/流日）",
        "10) 总结建议",
        "若数据缺失，请明确说明缺失项，不要编造。",
    ]
)
USER_PROMPT_HEADER = "以下是紫微斗数命盘结构化数据，请据此解读："

NOTICE_ANALYSIS_FAILED = "AI 解读失败，请稍后重试"
NOTICE_AUTOSAVE_FAILED = "自动保存失败，请重试"
NOTICE_ATTACH_FAILED = "保存解读失败，请重试"
NOTICE_NOT_CONFIGURED = "AI 服务未配置，请联系管理员"

DEFAULT_MAX_VIEWS = 256


class AnalysisState(str, Enum):
    """États d'une vue d'analyse."""

    IDLE = "idle"
    REQUESTING = "requesting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class RequestContext:
    """Contexte transporté tout au long d'une requête d'analyse."""

    request_token: int
    target_record_id: str | None


def build_user_prompt(document: dict) -> str:
    """Message utilisateur: en-tête puis document sérialisé dans un bloc ```json."""
    return f"{USER_PROMPT_HEADER}\n```json\n{payload_builder.serialize(document)}\n```"


def build_messages(document: dict) -> list[dict[str, str]]:
    """Échange à deux messages: instruction système fixe + document structuré."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_user_prompt(document)},
    ]


class AnalysisOrchestrator:
    """Machine à états d'une vue: idle → requesting → succeeded|failed.

    Paramètres:
    - birth: données de naissance de la vue.
    - store: store des thèmes (trouver-ou-créer et cache d'interprétation).
    - engine: moteur astrologique (`AstroEngine`).
    - client: service d'interprétation.
    - config_store: configuration courante (options de calcul du thème).
    - selection: palais cibles initiaux.
    - temperature: température d'échantillonnage transmise au service.
    - clock: date de référence des 运限 (injectable pour les tests).
    - on_notice: rappel recevant les messages destinés à l'utilisateur.
    """

    def __init__(
        self,
        birth: BirthInput,
        store: ChartStore,
        engine: AstroEngine,
        client: InterpretationService,
        config_store: ConfigStore,
        selection: TargetPalaceSelection | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        clock: Callable[[], datetime] | None = None,
        on_notice: Callable[[str], None] | None = None,
    ):
        """Initialise la vue; un résultat déjà enregistré pour ce thème est affiché d'emblée."""
        self.birth = birth
        self.view_key = identity_key(birth)
        self.store = store
        self.engine = engine
        self.client = client
        self.config_store = config_store
        self.selection = selection or TargetPalaceSelection()
        self.temperature = temperature
        self._clock = clock or datetime.now
        self._on_notice = on_notice
        self._tokens = itertools.count(1)
        self._current_token = 0
        self._state = AnalysisState.IDLE
        self._context: RequestContext | None = None
        self._notice: str | None = None
        # Enregistrement d'où provient le résultat affiché
        self._result_record_id: str | None = None
        self._previous_dropped = False
        self._log = structlog.get_logger(__name__).bind(
            component="analysis", view=self.view_key[:12]
        )
        existing = store.find_by_identity(birth)
        self._result: str | None = None
        if existing is not None and existing.interpretation is not None:
            self._result = existing.interpretation.content
            self._result_record_id = existing.id

    # -------------------- Lecture --------------------

    @property
    def state(self) -> AnalysisState:
        return self._state

    @property
    def result(self) -> str | None:
        """Résultat affiché (None pendant une requête)."""
        return self._result

    @property
    def notice(self) -> str | None:
        """Dernier message utilisateur émis."""
        return self._notice

    @property
    def context(self) -> RequestContext | None:
        return self._context

    # -------------------- Cycle de vie --------------------

    def reset(self) -> None:
        """Retour à idle; une réponse encore en vol sera ignorée."""
        self._current_token = next(self._tokens)
        self._state = AnalysisState.IDLE
        self._context = None

    def toggle_palace(self, name: str) -> TargetPalaceSelection:
        """Ajoute/retire un palais cible supplémentaire."""
        self.selection = self.selection.toggle(name)
        return self.selection

    def forget_record(self, record_id: str) -> None:
        """L'enregistrement `record_id` a été supprimé: la vue cesse de l'afficher et de le cibler.

        Une requête en vol retombe sur la résolution par identité au moment du rattachement.
        """
        if self._context is not None and self._context.target_record_id == record_id:
            self._context = RequestContext(self._context.request_token, None)
        if self._result_record_id != record_id:
            return
        self._result_record_id = None
        if self._state is AnalysisState.REQUESTING:
            self._previous_dropped = True
        else:
            self._result = None
        self._log.info("analysis_record_forgotten", record_id=record_id)

    async def start(self, selection: TargetPalaceSelection | None = None) -> str | None:
        """Lance une analyse; sans effet si une analyse est déjà en cours.

        Lève `ConfigurationMissing`, sans rien écrire ni changer d'état, si le service
        d'interprétation n'est pas configuré.

        Retour: le contenu généré en cas de succès, None sinon.
        """
        try:
            context = self._begin(selection)
        except AlreadyInFlight:
            self._log.debug("analysis_start_ignored", reason="in_flight")
            return None

        previous = self._result
        self._result = None
        started = time.perf_counter()
        try:
            astrolabe = self.engine.compute(self.birth, self.config_store.current, self._clock())
            document = payload_builder.build(astrolabe, self.selection, self.config_store.current)
            content = await self.client.complete(
                build_messages(document), temperature=self.temperature
            )
        except (NetworkOrServiceFailure, ConfigurationMissing, ValueError) as err:
            ANALYSIS_LATENCY.observe(time.perf_counter() - started)
            self._fail(context, previous, err)
            return None
        except Exception as err:
            self._fail(context, previous, err)
            raise
        ANALYSIS_LATENCY.observe(time.perf_counter() - started)
        return self._succeed(context, previous, content.strip())

    # -------------------- Interne --------------------

    def _begin(self, selection: TargetPalaceSelection | None) -> RequestContext:
        if self._state is AnalysisState.REQUESTING:
            raise AlreadyInFlight(self.view_key)
        if not self.client.configured:
            self._emit(NOTICE_NOT_CONFIGURED)
            self._log.warning("analysis_not_configured")
            raise ConfigurationMissing("interpretation service is not configured")
        if selection is not None:
            self.selection = selection

        target_id: str | None = None
        try:
            record, created = self.store.find_or_create(self.birth)
        except StorageWriteFailure:
            self._emit(NOTICE_AUTOSAVE_FAILED)
        else:
            target_id = record.id
            if created:
                self._log.info("analysis_record_created", record_id=record.id)

        # Aucun point de suspension entre le contrôle ci-dessus et le passage en requesting
        self._current_token = next(self._tokens)
        self._state = AnalysisState.REQUESTING
        self._previous_dropped = False
        self._context = RequestContext(self._current_token, target_id)
        self._log.info("analysis_started", token=self._current_token, record_id=target_id)
        return self._context

    def _is_current(self, context: RequestContext) -> bool:
        return context.request_token == self._current_token

    def _restored(self, previous: str | None) -> str | None:
        return None if self._previous_dropped else previous

    def _discard(self, context: RequestContext, previous: str | None) -> None:
        ANALYSIS_REQUESTS.labels(outcome="stale").inc()
        self._log.info("analysis_response_discarded", token=context.request_token)
        if self._result is None:
            self._result = self._restored(previous)

    def _fail(self, context: RequestContext, previous: str | None, err: Exception) -> None:
        if not self._is_current(context):
            self._discard(context, previous)
            return
        ANALYSIS_REQUESTS.labels(outcome="failed").inc()
        self._log.warning("analysis_failed", error=str(err), error_type=type(err).__name__)
        self._state = AnalysisState.FAILED
        self._result = self._restored(previous)
        self._emit(NOTICE_ANALYSIS_FAILED)

    def _succeed(self, context: RequestContext, previous: str | None, content: str) -> str | None:
        if not self._is_current(context):
            self._discard(context, previous)
            return None
        ANALYSIS_REQUESTS.labels(outcome="succeeded").inc()
        self._state = AnalysisState.SUCCEEDED
        self._result = content
        self._result_record_id = None
        # La cible courante tient compte d'une suppression survenue pendant la requête
        target_id = self._context.target_record_id if self._context else None
        try:
            record = self.store.attach_interpretation(
                self.birth, content, target_record_id=target_id
            )
        except StorageWriteFailure:
            self._emit(NOTICE_ATTACH_FAILED)
        else:
            self._result_record_id = record.id
            self._context = RequestContext(context.request_token, record.id)
            self._log.info("analysis_succeeded", record_id=record.id)
        return content

    def _emit(self, notice: str) -> None:
        self._notice = notice
        if self._on_notice is not None:
            self._on_notice(notice)


class AnalysisRegistry:
    """Vues d'analyse actives, indexées par clé d'identité du thème.

    Le registre est borné (`max_views`): au-delà, les vues les moins récemment consultées sont
    abandonnées, sauf celles qui ont une requête en vol.
    """

    def __init__(
        self,
        factory: Callable[[BirthInput], AnalysisOrchestrator],
        max_views: int = DEFAULT_MAX_VIEWS,
    ):
        """`factory` construit l'orchestrateur d'une nouvelle vue."""
        self._factory = factory
        self.max_views = max_views
        self._views: OrderedDict[str, AnalysisOrchestrator] = OrderedDict()

    def __len__(self) -> int:
        return len(self._views)

    def get(self, view_key: str) -> AnalysisOrchestrator | None:
        view = self._views.get(view_key)
        if view is not None:
            self._views.move_to_end(view_key)
        return view

    def open(self, birth: BirthInput) -> AnalysisOrchestrator:
        """Retourne la vue de `birth`, créée au premier accès."""
        key = identity_key(birth)
        view = self.get(key)
        if view is None:
            view = self._views[key] = self._factory(birth)
            self._evict()
        return view

    def forget_record(self, record_id: str) -> None:
        """Propage la suppression d'un enregistrement à toutes les vues."""
        for view in list(self._views.values()):
            view.forget_record(record_id)

    def clear(self) -> None:
        self._views.clear()

    def _evict(self) -> None:
        overflow = len(self._views) - self.max_views
        if overflow <= 0:
            return
        # La vue qui vient d'être ouverte n'est jamais abandonnée
        idle = [
            key
            for key, view in list(self._views.items())[:-1]
            if view.state is not AnalysisState.REQUESTING
        ]
        for key in idle[:overflow]:
            del self._views[key]
