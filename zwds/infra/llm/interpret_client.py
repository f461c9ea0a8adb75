"""
Client HTTP du service d'interprétation.

Implémente `InterpretationService` au-dessus de httpx:
- POST `{AI_SERVICE_URL}{AI_ENDPOINT_PATH}` avec `{messages, temperature[, model]}`
- réponse attendue au format chat-completion (`choices[0].message.content`)
- tout échec (transport, statut non-2xx, corps illisible, contenu vide) devient
  `NetworkOrServiceFailure`
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from zwds.core.constants import DEFAULT_ENDPOINT_PATH
from zwds.core.http_constants import HTTP_SUCCESS_MAX, HTTP_SUCCESS_MIN
from zwds.domain.errors import ConfigurationMissing, NetworkOrServiceFailure
from zwds.infra.llm.base import InterpretationService, extract_content

log = structlog.get_logger(__name__, component="interpret_client")


class InterpretClient(InterpretationService):
    """Client du service d'interprétation configuré par l'environnement."""

    def __init__(
        self,
        base_url: str | None,
        endpoint_path: str = DEFAULT_ENDPOINT_PATH,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialise le client; `transport` permet d'injecter un transport de test."""
        self.base_url = base_url.rstrip("/") if base_url else None
        self.endpoint_path = endpoint_path
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings) -> InterpretClient:
        """Construit le client à partir des paramètres applicatifs."""
        return cls(
            base_url=settings.AI_SERVICE_URL,
            endpoint_path=settings.AI_ENDPOINT_PATH,
            api_key=settings.AI_API_KEY,
            model=settings.AI_MODEL,
            timeout=settings.AI_TIMEOUT_SECONDS,
        )

    @property
    def configured(self) -> bool:
        """Vrai si l'URL du service est renseignée."""
        return bool(self.base_url)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _body(self, messages: list[dict[str, str]], temperature: float) -> dict[str, Any]:
        body: dict[str, Any] = {"messages": messages, "temperature": temperature}
        if self.model:
            body["model"] = self.model
        return body

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
    ) -> str:
        """Soumet la conversation et retourne le contenu Markdown généré."""
        if not self.base_url:
            raise ConfigurationMissing("AI_SERVICE_URL is not set")

        url = f"{self.base_url}{self.endpoint_path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    url, json=self._body(messages, temperature), headers=self._headers()
                )
        except httpx.HTTPError as err:
            log.warning("interpret_transport_failed", url=url, error=str(err))
            raise NetworkOrServiceFailure(f"transport error: {err}") from err

        if not HTTP_SUCCESS_MIN <= response.status_code < HTTP_SUCCESS_MAX:
            log.warning("interpret_bad_status", url=url, status=response.status_code)
            raise NetworkOrServiceFailure(
                f"service returned status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as err:
            raise NetworkOrServiceFailure("service returned a non-JSON body") from err

        content = extract_content(payload)
        if content is None:
            raise NetworkOrServiceFailure("service returned no content")
        return content
