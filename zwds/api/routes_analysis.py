"""
Routes d'analyse des thèmes par le service d'interprétation.

Une vue d'analyse est identifiée par la clé d'identité du thème. Une demande concurrente sur une
vue déjà en cours ne déclenche aucun nouvel appel et renvoie l'état `requesting`.
"""

from fastapi import APIRouter

from zwds.api.errors import not_found
from zwds.api.schemas import AnalysisOut, AnalysisRequest
from zwds.core.container import container
from zwds.domain.analysis_orchestrator import AnalysisOrchestrator
from zwds.domain.entities import TargetPalaceSelection

router = APIRouter(prefix="/analysis", tags=["analysis"])


def _view_out(view: AnalysisOrchestrator) -> AnalysisOut:
    context = view.context
    return AnalysisOut(
        view_key=view.view_key,
        state=view.state.value,
        content=view.result,
        record_id=context.target_record_id if context else None,
        notice=view.notice,
        target_palaces=list(view.selection.palaces),
    )


@router.post("", response_model=AnalysisOut, response_model_by_alias=True)
async def run_analysis(payload: AnalysisRequest):
    """
    Lance (ou relance) l'analyse du thème.

    Paramètres:
    - payload: naissance et palais cibles supplémentaires (命宫 toujours inclus).

    Retour: état de la vue, contenu affiché, enregistrement rattaché et dernier message.
    """
    selection = TargetPalaceSelection(tuple(payload.extra_palaces))
    view = container.analyses.open(payload.birth)
    await view.start(selection)
    return _view_out(view)


@router.get("/{view_key}", response_model=AnalysisOut, response_model_by_alias=True)
def get_analysis(view_key: str):
    """État courant d'une vue d'analyse."""
    view = container.analyses.get(view_key)
    if view is None:
        raise not_found("Unknown analysis view")
    return _view_out(view)
