# Schémas Pydantic exposés par l'API (requêtes et réponses).

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from zwds.domain.entities import BirthInput, ChartRecord, Interpretation


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChartOut(_CamelModel):
    """Thème enregistré tel que renvoyé par l'API.

    Champs:
    - id: str (identifiant opaque)
    - display_name: str
    - created_at: int (epoch ms)
    - birth: BirthInput
    - solar_date: str (instant solaire ISO-8601)
    - interpretation: Interpretation | None
    """

    id: str
    display_name: str
    created_at: int
    birth: BirthInput
    solar_date: str
    interpretation: Interpretation | None = None

    @classmethod
    def from_record(cls, record: ChartRecord) -> "ChartOut":
        return cls(
            id=record.id,
            display_name=record.display_name,
            created_at=record.created_at,
            birth=record.birth,
            solar_date=record.solar_instant.isoformat(),
            interpretation=record.interpretation,
        )


class LookupOut(_CamelModel):
    """Résultat d'une recherche par identité (`has_interpretation` → « voir » ou « interpréter »)."""

    chart: ChartOut
    has_interpretation: bool


class AnalysisRequest(_CamelModel):
    """Demande d'analyse: naissance + palais cibles supplémentaires."""

    birth: BirthInput
    extra_palaces: list[str] = Field(default_factory=list)


class AnalysisOut(_CamelModel):
    """État d'une vue d'analyse après l'appel."""

    view_key: str
    state: str
    content: str | None = None
    record_id: str | None = None
    notice: str | None = None
    target_palaces: list[str] = Field(default_factory=list)
