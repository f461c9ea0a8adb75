"""
Entités du domaine métier.

Ce module définit les modèles de données principaux: données de naissance, enregistrements de
thèmes persistés, configuration de session et sélection des palais cibles.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from zwds.core.constants import LIFE_PALACE, PALACE_NAMES
from zwds.domain.errors import UnknownPalace

Gender = Literal["male", "female"]
CalendarType = Literal["solar", "lunar"]
YearDivide = Literal["normal", "exact"]
HoroscopeDivide = Literal["normal", "exact"]
AgeDivide = Literal["normal", "birthday"]
DayDivide = Literal["current", "forward"]
Algorithm = Literal["default", "zhongzhou"]


class BirthInput(BaseModel):
    """Données de naissance d'un thème, immuables une fois le thème créé."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    name: str = ""
    gender: Gender
    calendar_type: CalendarType = "solar"
    year: int
    month: int = Field(ge=1, le=12)
    day: int = Field(ge=1, le=31)
    hour: int = Field(ge=0, le=23)
    leap_month_fix: bool = False

    @field_validator("name", mode="before")
    @classmethod
    def _missing_name_is_empty(cls, value: Any) -> Any:
        # Un nom absent est la chaîne vide littérale, jamais un joker
        return "" if value is None else value


class Interpretation(BaseModel):
    """Interprétation générée rattachée à un thème (contenu Markdown)."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    content: str
    produced_at: int  # epoch ms


class ChartRecord(BaseModel):
    """Thème persisté, possédé exclusivement par le `ChartStore`."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    display_name: str
    created_at: int  # epoch ms
    birth: BirthInput
    solar_instant: datetime
    interpretation: Interpretation | None = None

    def to_document(self) -> dict[str, Any]:
        """Forme persistée: `birth.solarDate` en ISO-8601, aucun autre champ transformé."""
        birth = self.birth.model_dump(by_alias=True)
        birth["solarDate"] = self.solar_instant.isoformat()
        return {
            "id": self.id,
            "displayName": self.display_name,
            "createdAt": self.created_at,
            "birth": birth,
            "interpretation": (
                self.interpretation.model_dump(by_alias=True) if self.interpretation else None
            ),
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> ChartRecord:
        """Reconstruit un enregistrement depuis sa forme persistée."""
        birth = dict(doc["birth"])
        solar_date = birth.pop("solarDate")
        raw_interp = doc.get("interpretation")
        return cls(
            id=str(doc["id"]),
            display_name=doc.get("displayName") or "",
            created_at=int(doc.get("createdAt") or 0),
            birth=BirthInput.model_validate(birth),
            solar_instant=datetime.fromisoformat(solar_date),
            interpretation=Interpretation.model_validate(raw_interp) if raw_interp else None,
        )


class ChartConfig(BaseModel):
    """Configuration de session, lue par le constructeur de payload et le rendu."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    hide_transit_stars: bool = False
    hide_horoscope: bool = False
    hide_birth_time: bool = False
    year_divide: YearDivide = "normal"
    horoscope_divide: HoroscopeDivide = "exact"
    age_divide: AgeDivide = "normal"
    day_divide: DayDivide = "current"
    algorithm: Algorithm = "default"

    def engine_options(self) -> dict[str, str]:
        """Options qui influencent le calcul astrologique (et non l'affichage)."""
        return {
            "yearDivide": self.year_divide,
            "horoscopeDivide": self.horoscope_divide,
            "ageDivide": self.age_divide,
            "dayDivide": self.day_divide,
            "algorithm": self.algorithm,
        }


@dataclass(frozen=True)
class TargetPalaceSelection:
    """Palais ciblés par l'analyse: le palais de vie fixe plus une sélection utilisateur.

    Les palais supplémentaires sont normalisés à la construction: doublons et palais fixe retirés,
    ordre de sélection conservé. Un nom inconnu lève `UnknownPalace`.
    """

    FIXED: ClassVar[tuple[str, ...]] = (LIFE_PALACE,)

    extras: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Valide et normalise la sélection supplémentaire."""
        normalized: list[str] = []
        for name in self.extras:
            if name not in PALACE_NAMES:
                raise UnknownPalace(f"unknown palace: {name}")
            if name in self.FIXED or name in normalized:
                continue
            normalized.append(name)
        object.__setattr__(self, "extras", tuple(normalized))

    @classmethod
    def optional_palaces(cls) -> tuple[str, ...]:
        """Les onze palais sélectionnables."""
        return tuple(name for name in PALACE_NAMES if name not in cls.FIXED)

    @property
    def palaces(self) -> tuple[str, ...]:
        """Palais fixes puis supplémentaires, sans doublon."""
        return self.FIXED + self.extras

    def toggle(self, name: str) -> TargetPalaceSelection:
        """Ajoute ou retire un palais supplémentaire; le palais fixe est ignoré."""
        if name not in PALACE_NAMES:
            raise UnknownPalace(f"unknown palace: {name}")
        if name in self.FIXED:
            return self
        if name in self.extras:
            return TargetPalaceSelection(tuple(p for p in self.extras if p != name))
        return TargetPalaceSelection((*self.extras, name))
