"""Taxonomie des erreurs du domaine.

Aucune de ces erreurs n'est fatale au processus: toutes sont récupérables en relançant l'action
qui les a déclenchées. La couche HTTP les projette sur l'enveloppe d'erreur standard.
"""

from __future__ import annotations


class ZwdsError(Exception):
    """Racine des erreurs métier."""

    code = "ZWDS_ERROR"


class IdentityAmbiguity(ZwdsError):
    """Deux enregistrements partagent la même identité de thème.

    Invariant de conception documenté: l'index d'identité du `ChartStore` tolère un doublon
    transitoire (le plus récent gagne) mais ne lève jamais cette erreur à l'exécution.
    """

    code = "IDENTITY_AMBIGUITY"


class StorageWriteFailure(ZwdsError):
    """Écriture durable refusée (quota, backend indisponible)."""

    code = "STORAGE_WRITE_FAILED"

    def __init__(self, key: str, message: str | None = None) -> None:
        """Mémorise la clé de stockage concernée."""
        self.key = key
        super().__init__(message or f"storage write failed for key {key!r}")


class NetworkOrServiceFailure(ZwdsError):
    """Échec de l'appel au service d'interprétation (transport, statut, corps invalide)."""

    code = "AI_SERVICE_FAILURE"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Conserve le statut HTTP quand il est connu."""
        self.status_code = status_code
        super().__init__(message)


class ConfigurationMissing(ZwdsError):
    """La frontière vers le service d'interprétation n'est pas configurée."""

    code = "AI_SERVICE_NOT_CONFIGURED"


class AlreadyInFlight(ZwdsError):
    """Une analyse est déjà en cours pour cette vue."""

    code = "ANALYSIS_IN_FLIGHT"


class DuplicateRecordId(ZwdsError):
    """Insertion refusée: l'identifiant existe déjà dans le store."""

    code = "DUPLICATE_RECORD_ID"


class UnknownPalace(ZwdsError, ValueError):
    """Nom de palais hors des douze palais connus."""

    code = "UNKNOWN_PALACE"
