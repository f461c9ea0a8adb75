"""Identité d'un thème natal et relation d'équivalence.

Deux thèmes sont « le même » quand tous les champs bruts de `BirthInput` sont égaux ET que leurs
instants solaires dérivés coïncident. Les champs bruts protègent contre deux saisies distinctes qui
se résoudraient au même instant (ambiguïté lunaire/solaire); l'instant protège contre une
dérivation périmée. Il s'agit d'une égalité exacte, jamais d'un score de similarité.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date, datetime

from lunardate import LunarDate

from zwds.domain.entities import BirthInput, ChartRecord


def chinese_hour_index(hour: int) -> int:
    """Index du double-heure chinois (时辰): 0 pour 23h–00h59, puis un par tranche de 2h."""
    if hour >= 23 or hour < 1:  # noqa: PLR2004
        return 0
    return (hour + 1) // 2


def derive_solar_instant(birth: BirthInput) -> datetime:
    """Résout la naissance en instant solaire absolu (heure murale, sans fuseau).

    Les dates lunaires passent par `lunardate` (mois non intercalaire); une date invalide lève
    `ValueError`.
    """
    if birth.calendar_type == "lunar":
        solar: date = LunarDate(birth.year, birth.month, birth.day).to_solar_date()
    else:
        solar = date(birth.year, birth.month, birth.day)
    return datetime(solar.year, solar.month, solar.day, birth.hour)


def _canonical(birth: BirthInput, solar_instant: datetime) -> str:
    payload = {
        "name": birth.name,
        "gender": birth.gender,
        "calendarType": birth.calendar_type,
        "year": birth.year,
        "month": birth.month,
        "day": birth.day,
        "hour": birth.hour,
        "leapMonthFix": birth.leap_month_fix,
        "solarDate": solar_instant.isoformat(),
    }
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def identity_key(birth: BirthInput, solar_instant: datetime | None = None) -> str:
    """Clé d'identité canonique (SHA-256) servant d'index dans le store."""
    instant = solar_instant or derive_solar_instant(birth)
    return hashlib.sha256(_canonical(birth, instant).encode("utf-8")).hexdigest()


def record_identity_key(record: ChartRecord) -> str:
    """Clé d'identité d'un enregistrement, à partir de son instant persisté."""
    return identity_key(record.birth, record.solar_instant)


def same_chart(
    record: ChartRecord, birth: BirthInput, solar_instant: datetime | None = None
) -> bool:
    """Vrai si `record` et `birth` désignent le même thème (égalité champ à champ + instant)."""
    instant = solar_instant or derive_solar_instant(birth)
    return (
        record.birth == birth
        and record.solar_instant.isoformat() == instant.isoformat()
    )
