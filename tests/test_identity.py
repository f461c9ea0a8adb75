"""Tests de l'identité des thèmes et de la relation d'équivalence `same_chart`."""

from __future__ import annotations

from datetime import datetime

import pytest

from zwds.domain.entities import BirthInput
from zwds.domain.identity import (
    chinese_hour_index,
    derive_solar_instant,
    identity_key,
    same_chart,
)

LATE_NIGHT_HOUR = 23
NOON_HOUR = 12
NOON_INDEX = 6


@pytest.mark.parametrize(
    ("hour", "expected"),
    [(0, 0), (LATE_NIGHT_HOUR, 0), (1, 1), (2, 1), (3, 2), (NOON_HOUR, NOON_INDEX), (22, 11)],
)
def test_chinese_hour_index(hour: int, expected: int) -> None:
    """Teste le découpage en double-heures (子 couvre 23h et 0h)."""
    assert chinese_hour_index(hour) == expected


def test_derive_solar_instant_solar(birth_a: BirthInput) -> None:
    """Teste qu'une date solaire est reprise telle quelle, à l'heure de naissance."""
    assert derive_solar_instant(birth_a) == datetime(1990, 1, 1, 0)


def test_derive_solar_instant_lunar() -> None:
    """Teste la conversion lunaire → solaire (nouvel an lunaire 2024 = 10 février)."""
    birth = BirthInput(gender="male", calendar_type="lunar", year=2024, month=1, day=1, hour=8)
    assert derive_solar_instant(birth) == datetime(2024, 2, 10, 8)


def test_derive_solar_instant_invalid_date() -> None:
    """Teste qu'une date solaire impossible lève ValueError."""
    birth = BirthInput(gender="male", year=2023, month=2, day=30, hour=8)
    with pytest.raises(ValueError):
        derive_solar_instant(birth)


def test_missing_name_is_empty_string() -> None:
    """Teste qu'un nom absent devient la chaîne vide (jamais un joker)."""
    birth = BirthInput(name=None, gender="female", year=2000, month=5, day=5, hour=5)
    assert birth.name == ""


def test_identity_key_stable_and_field_sensitive(birth_a: BirthInput) -> None:
    """Teste que la clé est stable et change avec n'importe quel champ brut."""
    assert identity_key(birth_a) == identity_key(birth_a.model_copy())
    assert identity_key(birth_a) != identity_key(birth_a.model_copy(update={"name": "B"}))
    assert identity_key(birth_a) != identity_key(
        birth_a.model_copy(update={"leap_month_fix": True})
    )


def _record_for(store, birth):
    return store.new_record(birth)


def test_same_chart_is_reflexive_and_symmetric(store, birth_a: BirthInput) -> None:
    """Teste la réflexivité et la symétrie de l'équivalence."""
    twin = BirthInput(**birth_a.model_dump())
    rec_a = _record_for(store, birth_a)
    rec_twin = _record_for(store, twin)

    assert same_chart(rec_a, birth_a)
    assert same_chart(rec_a, twin) and same_chart(rec_twin, birth_a)


def test_same_chart_is_transitive(store, birth_a: BirthInput) -> None:
    """Teste la transitivité sous égalité champ à champ."""
    b = BirthInput(**birth_a.model_dump())
    c = BirthInput(**b.model_dump())
    assert same_chart(_record_for(store, birth_a), b)
    assert same_chart(_record_for(store, b), c)
    assert same_chart(_record_for(store, birth_a), c)


def test_same_chart_rejects_distinct_raw_inputs_with_same_instant(store) -> None:
    """Teste que deux saisies brutes distinctes au même instant restent distinctes."""
    lunar = BirthInput(gender="male", calendar_type="lunar", year=2024, month=1, day=1, hour=8)
    solar = BirthInput(gender="male", calendar_type="solar", year=2024, month=2, day=10, hour=8)
    assert derive_solar_instant(lunar) == derive_solar_instant(solar)
    assert not same_chart(_record_for(store, lunar), solar)


def test_same_chart_rejects_stale_instant(store, birth_a: BirthInput) -> None:
    """Teste qu'un instant persisté différent de l'instant dérivé casse l'équivalence."""
    record = _record_for(store, birth_a).model_copy(
        update={"solar_instant": datetime(1990, 1, 2, 0)}
    )
    assert not same_chart(record, birth_a)
