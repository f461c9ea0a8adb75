"""Structure astrologique consommée par le constructeur de payload.

Le moteur de calcul (naissance → palais/étoiles/运限) est un collaborateur externe; ce module fixe
le contrat de sa sortie et les quelques relations dérivées dont l'analyse a besoin (三方四正,
宫干四化). Les clés JSON suivent la convention camelCase des moteurs iztro.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
from typing import TYPE_CHECKING, NamedTuple, Protocol

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from zwds.core.constants import CAREER_OFFSET, OPPOSITE_OFFSET, PALACE_COUNT, WEALTH_OFFSET

if TYPE_CHECKING:
    from zwds.domain.entities import BirthInput, ChartConfig

# 十干四化: étoiles transformées en 禄, 权, 科, 忌 par chaque tige céleste
STEM_MUTAGENS: dict[str, tuple[str, str, str, str]] = {
    "甲": ("廉贞", "破军", "武曲", "太阳"),
    "乙": ("天机", "天梁", "紫微", "太阴"),
    "丙": ("天同", "天机", "文昌", "廉贞"),
    "丁": ("太阴", "天同", "天机", "巨门"),
    "戊": ("贪狼", "太阴", "右弼", "天机"),
    "己": ("武曲", "贪狼", "天梁", "文曲"),
    "庚": ("太阳", "武曲", "太阴", "天同"),
    "辛": ("巨门", "太阳", "文曲", "文昌"),
    "壬": ("天梁", "紫微", "左辅", "武曲"),
    "癸": ("破军", "巨门", "太阴", "贪狼"),
}


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class Star(_Model):
    """Étoile placée dans un palais."""

    name: str
    type: str = "major"
    brightness: str = ""
    mutagen: str = ""


class Palace(_Model):
    """Un des douze palais du thème."""

    index: int
    name: str
    heavenly_stem: str
    earthly_branch: str
    is_body_palace: bool = False
    is_original_palace: bool = False
    major_stars: list[Star] = Field(default_factory=list)
    minor_stars: list[Star] = Field(default_factory=list)
    adjective_stars: list[Star] = Field(default_factory=list)

    def stars(self) -> Iterator[Star]:
        """Toutes les étoiles, catégorie par catégorie (majeures, mineures, adjectives)."""
        yield from self.major_stars
        yield from self.minor_stars
        yield from self.adjective_stars

    def is_empty(self) -> bool:
        """Palais vide: aucune étoile majeure."""
        return not any(star.type == "major" for star in self.major_stars)


class HoroscopeItem(_Model):
    """Un cycle de 运限 (décennal, annuel, journalier) à la date de référence."""

    index: int
    name: str
    heavenly_stem: str
    earthly_branch: str
    palace_names: list[str] = Field(default_factory=list)
    mutagen: list[str] = Field(default_factory=list)


class Horoscope(_Model):
    """Superposition temporelle calculée à une date de référence."""

    solar_date: str
    lunar_date: str
    decadal: HoroscopeItem
    yearly: HoroscopeItem
    daily: HoroscopeItem


class SurroundedPalaces(NamedTuple):
    """三方四正 d'un palais: la cible, son opposé, ses axes richesse et carrière."""

    target: Palace | None
    opposite: Palace | None
    wealth: Palace | None
    career: Palace | None


class Astrolabe(_Model):
    """Thème calculé complet (douze palais et 运限 à la date de référence)."""

    name: str = ""
    gender: str
    solar_date: str
    lunar_date: str
    chinese_date: str
    time: str
    time_range: str
    zodiac: str
    sign: str
    soul: str
    body: str
    earthly_branch_of_soul_palace: str
    earthly_branch_of_body_palace: str
    palaces: list[Palace]
    horoscope: Horoscope

    def palace(self, name: str) -> Palace | None:
        """Palais par nom."""
        return next((p for p in self.palaces if p.name == name), None)

    def palace_at(self, index: int) -> Palace | None:
        """Palais par position (modulo 12)."""
        position = index % PALACE_COUNT
        return next((p for p in self.palaces if p.index == position), None)

    def body_palace(self) -> Palace | None:
        """Palais qui porte le 身宫."""
        return next((p for p in self.palaces if p.is_body_palace), None)

    def surrounded_palaces(self, name: str) -> SurroundedPalaces:
        """三方四正 du palais `name`; une relation non résolue vaut None."""
        target = self.palace(name)
        if target is None:
            return SurroundedPalaces(None, None, None, None)
        return SurroundedPalaces(
            target=target,
            opposite=self.palace_at(target.index + OPPOSITE_OFFSET),
            wealth=self.palace_at(target.index + WEALTH_OFFSET),
            career=self.palace_at(target.index + CAREER_OFFSET),
        )

    def star_palace(self, star_name: str) -> Palace | None:
        """Palais qui contient l'étoile `star_name`."""
        for palace in self.palaces:
            if any(star.name == star_name for star in palace.stars()):
                return palace
        return None

    def mutaged_places(self, palace: Palace) -> list[Palace | None]:
        """宫干四化: palais atteints par les quatre transformations de la tige du palais."""
        stars = STEM_MUTAGENS.get(palace.heavenly_stem)
        if stars is None:
            return [None, None, None, None]
        return [self.star_palace(star) for star in stars]


class AstroEngine(Protocol):
    """Moteur de calcul: naissance + options + date de référence → thème complet."""

    def compute(
        self, birth: BirthInput, config: ChartConfig, reference: datetime
    ) -> Astrolabe: ...
