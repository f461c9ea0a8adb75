"""Interface de base pour le service d'interprétation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class InterpretationService(ABC):
    """Interface abstraite d'un service de raisonnement de type chat-completion."""

    @property
    def configured(self) -> bool:
        """Vrai si le service peut être appelé (frontière configurée)."""
        return True

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
    ) -> str:
        """Soumet les messages et retourne le contenu généré (non vide).

        Lève `ConfigurationMissing` si le service n'est pas configuré et
        `NetworkOrServiceFailure` pour tout autre échec.
        """
        ...


def extract_content(body: Any) -> str | None:
    """Extrait `choices[0].message.content` d'une réponse; None si absent ou blanc."""
    try:
        content = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(content, str) or not content.strip():
        return None
    return content
