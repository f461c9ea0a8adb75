"""
Routes des thèmes enregistrés.

Ce module regroupe les endpoints `/charts`: liste, sauvegarde explicite, recherche par identité et
suppression. Les réponses utilisent les alias camelCase du format persisté.
"""

from fastapi import APIRouter, Response

from zwds.api.errors import not_found
from zwds.api.schemas import ChartOut, LookupOut
from zwds.core.container import container
from zwds.core.http_constants import HTTP_CREATED, HTTP_NO_CONTENT
from zwds.domain.entities import BirthInput

router = APIRouter(prefix="/charts", tags=["charts"])


@router.get("", response_model=list[ChartOut], response_model_by_alias=True)
def list_charts():
    """Retourne les thèmes enregistrés, le plus récent en tête."""
    return [ChartOut.from_record(r) for r in container.chart_store.list()]


@router.post(
    "", response_model=ChartOut, status_code=HTTP_CREATED, response_model_by_alias=True
)
def save_chart(birth: BirthInput):
    """
    Sauvegarde explicite d'un thème.

    Crée toujours un nouvel enregistrement, même si un thème de même identité existe.
    """
    return ChartOut.from_record(container.chart_store.save_chart(birth))


@router.post("/lookup", response_model=LookupOut, response_model_by_alias=True)
def lookup_chart(birth: BirthInput):
    """Recherche le thème de même identité; 404 s'il n'existe pas."""
    record = container.chart_store.find_by_identity(birth)
    if record is None:
        raise not_found("No saved chart matches this birth input")
    return LookupOut(
        chart=ChartOut.from_record(record),
        has_interpretation=record.interpretation is not None,
    )


@router.delete("/{chart_id}", status_code=HTTP_NO_CONTENT)
def delete_chart(chart_id: str):
    """Supprime un thème; idempotent."""
    container.chart_store.delete_by_id(chart_id)
    return Response(status_code=HTTP_NO_CONTENT)
