"""
Tests du constructeur de document d'analyse.

Vérifie le contrat de structure (clés et ordre), le format des étoiles, les 四化 et le 三方四正
sur un thème construit à la main, ainsi que le déterminisme octet pour octet.
"""

from __future__ import annotations

import json

from tests.fakes import sample_astrolabe
from zwds.domain import payload_builder
from zwds.domain.astrolabe import Star
from zwds.domain.entities import ChartConfig, TargetPalaceSelection

TOP_LEVEL_KEYS = [
    "基础信息",
    "命身与性格参考",
    "命宫三方四正",
    "生年四化",
    "宫干四化",
    "目标宫位",
    "运限",
    "十二宫总览",
]


def _build(extras: tuple[str, ...] = ()) -> dict:
    return payload_builder.build(
        sample_astrolabe(), TargetPalaceSelection(extras), ChartConfig()
    )


def test_top_level_keys_and_order() -> None:
    assert list(_build()) == TOP_LEVEL_KEYS


def test_build_is_byte_identical_across_calls() -> None:
    """Teste le déterminisme: mêmes entrées → même sérialisation."""
    first = payload_builder.serialize(_build(("夫妻", "财帛")))
    second = payload_builder.serialize(_build(("夫妻", "财帛")))
    assert first == second
    assert "命宫" in first and "\\u" not in first


def test_format_star_variants() -> None:
    """Teste le format `nom(éclat·化X)` selon les attributs présents."""
    assert payload_builder.format_star(Star(name="紫微", brightness="庙", mutagen="权")) == (
        "紫微(庙·化权)"
    )
    assert payload_builder.format_star(Star(name="文昌", mutagen="科")) == "文昌(化科)"
    assert payload_builder.format_star(Star(name="天府", brightness="得")) == "天府(得)"
    assert payload_builder.format_star(Star(name="红鸾")) == "红鸾"


def test_palace_summary_fields() -> None:
    """Teste le résumé du palais de vie."""
    life = _build()["命身与性格参考"]["命宫"]
    assert life == {
        "name": "命宫",
        "index": 0,
        "heavenlyStem": "丙",
        "earthlyBranch": "寅",
        "isBodyPalace": False,
        "isOriginalPalace": True,
        "isEmpty": False,
        "majorStars": ["紫微(庙·化权)"],
        "minorStars": [],
        "adjectiveStars": ["红鸾"],
        "mutagens": {"禄": [], "权": ["紫微"], "科": [], "忌": []},
    }


def test_empty_palace_keeps_all_mutagen_keys() -> None:
    """Teste qu'un palais sans étoile est vide et garde les quatre clés de 四化."""
    overview = _build()["十二宫总览"]
    siblings = next(p for p in overview if p["name"] == "兄弟")
    assert siblings["isEmpty"] is True
    assert siblings["mutagens"] == {"禄": [], "权": [], "科": [], "忌": []}


def test_body_fortune_and_migration_snapshots() -> None:
    refs = _build()["命身与性格参考"]
    assert refs["身宫"]["name"] == "福德"
    assert refs["福德宫"]["isBodyPalace"] is True
    assert refs["迁移宫"]["majorStars"] == ["天机(旺·化禄)"]


def test_life_palace_tri_square() -> None:
    """Teste le 三方四正 du 命宫: opposé +6, richesse +8, carrière +4."""
    surrounded = _build()["命宫三方四正"]
    assert surrounded["target"]["name"] == "命宫"
    assert surrounded["opposite"]["name"] == "迁移"
    assert surrounded["wealth"]["name"] == "财帛"
    assert surrounded["career"]["name"] == "官禄"


def test_birth_year_mutagens_are_palace_star_labels() -> None:
    assert _build()["生年四化"] == {
        "禄": ["迁移-天机"],
        "权": ["命宫-紫微"],
        "科": ["财帛-文昌"],
        "忌": ["官禄-廉贞"],
    }


def test_stem_mutagens_resolve_target_palaces() -> None:
    """Teste le 宫干四化 du 命宫 (tige 丙: 天同, 天机, 文昌, 廉贞)."""
    assert _build()["宫干四化"]["命宫"] == {
        "禄": None,
        "权": "迁移",
        "科": "财帛",
        "忌": "官禄",
    }


def test_target_palace_block() -> None:
    """Teste le bloc des palais cibles: fixe, supplémentaires puis détail de chacun."""
    block = _build(("夫妻",))["目标宫位"]
    assert block["固定"] == ["命宫"]
    assert block["补充"] == ["夫妻"]
    assert list(block["详情"]) == ["命宫", "夫妻"]
    detail = block["详情"]["夫妻"]
    assert detail["palace"]["name"] == "夫妻"
    assert set(detail["surrounded"]) == {"target", "opposite", "wealth", "career"}
    assert set(detail["palaceMutagens"]) == {"禄", "权", "科", "忌"}


def test_unresolvable_relation_is_null() -> None:
    """Teste le placeholder null d'un palais introuvable."""
    astrolabe = sample_astrolabe()
    partial = astrolabe.model_copy(
        update={"palaces": [p for p in astrolabe.palaces if p.name != "迁移"]}
    )
    doc = payload_builder.build(partial, TargetPalaceSelection(), ChartConfig())
    assert doc["命宫三方四正"]["opposite"] is None
    assert doc["命身与性格参考"]["迁移宫"] is None


def test_basic_info_and_horoscope() -> None:
    doc = _build()
    basic = doc["基础信息"]
    assert basic["gender"] == "男"
    assert basic["soulPalaceEarthlyBranch"] == "寅"
    assert basic["config"]["horoscopeDivide"] == "exact"
    horoscope = doc["运限"]
    assert horoscope["solarDate"] == "2024-06-15"
    assert horoscope["decadal"]["name"] == "大限"
    assert horoscope["yearly"]["heavenlyStem"] == "癸"
    assert len(horoscope["daily"]["palaceNames"]) == 12
    assert len(doc["十二宫总览"]) == 12


def test_serialize_is_indented_json() -> None:
    text = payload_builder.serialize(_build())
    assert text.startswith('{\n  "基础信息"')
    assert json.loads(text)["基础信息"]["name"] == "A"
