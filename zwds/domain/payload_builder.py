"""Compilation d'un thème en document structuré pour le service d'interprétation.

Fonction pure: mêmes entrées (structure astrologique, palais cibles, configuration) → même
document, octet pour octet une fois sérialisé. Le consommateur est un modèle de langage sensible à
la structure: l'ensemble des clés de premier niveau et leur ordre font partie du contrat.
"""

from __future__ import annotations

import json
from typing import Any

from zwds.core.constants import (
    FORTUNE_PALACE,
    LIFE_PALACE,
    MIGRATION_PALACE,
    MUTAGEN_LABELS,
)
from zwds.domain.astrolabe import Astrolabe, HoroscopeItem, Palace, Star
from zwds.domain.entities import ChartConfig, TargetPalaceSelection

GENDER_LABELS = {"male": "男", "female": "女"}


def format_star(star: Star) -> str:
    """`紫微(庙·化权)`: nom, éclat puis transformation éventuelle."""
    tags: list[str] = []
    if star.brightness:
        tags.append(star.brightness)
    if star.mutagen:
        tags.append(f"化{star.mutagen}")
    return f"{star.name}({'·'.join(tags)})" if tags else star.name


def _empty_mutagen_map() -> dict[str, list[str]]:
    return {label: [] for label in MUTAGEN_LABELS}


def collect_palace_mutagens(palace: Palace | None) -> dict[str, list[str]]:
    """Étoiles du palais portant chacune des quatre transformations."""
    mutagens = _empty_mutagen_map()
    if palace is None:
        return mutagens
    for star in palace.stars():
        bucket = mutagens.get(star.mutagen)
        if bucket is not None and star.name not in bucket:
            bucket.append(star.name)
    return mutagens


def collect_chart_mutagens(astrolabe: Astrolabe) -> dict[str, list[str]]:
    """生年四化 du thème: `<palais>-<étoile>` par transformation, dédupliqués."""
    mutagens = _empty_mutagen_map()
    for palace in astrolabe.palaces:
        for star in palace.stars():
            bucket = mutagens.get(star.mutagen)
            label = f"{palace.name}-{star.name}"
            if bucket is not None and label not in bucket:
                bucket.append(label)
    return mutagens


def summarize_palace(palace: Palace | None) -> dict[str, Any] | None:
    """Résumé d'un palais (None si le palais n'est pas résolu)."""
    if palace is None:
        return None
    return {
        "name": palace.name,
        "index": palace.index,
        "heavenlyStem": palace.heavenly_stem,
        "earthlyBranch": palace.earthly_branch,
        "isBodyPalace": palace.is_body_palace,
        "isOriginalPalace": palace.is_original_palace,
        "isEmpty": palace.is_empty(),
        "majorStars": [format_star(s) for s in palace.major_stars],
        "minorStars": [format_star(s) for s in palace.minor_stars],
        "adjectiveStars": [format_star(s) for s in palace.adjective_stars],
        "mutagens": collect_palace_mutagens(palace),
    }


def summarize_mutaged_places(
    astrolabe: Astrolabe, palace: Palace | None
) -> dict[str, str | None] | None:
    """宫干四化 d'un palais: nom du palais atteint par chaque transformation."""
    if palace is None:
        return None
    reached = astrolabe.mutaged_places(palace)
    return {
        label: (target.name if target is not None else None)
        for label, target in zip(MUTAGEN_LABELS, reached, strict=True)
    }


def summarize_surrounded(astrolabe: Astrolabe, palace_name: str) -> dict[str, Any]:
    """三方四正 du palais: cible, opposé, richesse, carrière."""
    surrounded = astrolabe.surrounded_palaces(palace_name)
    return {
        "target": summarize_palace(surrounded.target),
        "opposite": summarize_palace(surrounded.opposite),
        "wealth": summarize_palace(surrounded.wealth),
        "career": summarize_palace(surrounded.career),
    }


def format_horoscope(item: HoroscopeItem) -> dict[str, Any]:
    return {
        "index": item.index,
        "name": item.name,
        "heavenlyStem": item.heavenly_stem,
        "earthlyBranch": item.earthly_branch,
        "palaceNames": list(item.palace_names),
        "mutagen": list(item.mutagen),
    }


def _basic_info(astrolabe: Astrolabe, config: ChartConfig) -> dict[str, Any]:
    return {
        "name": astrolabe.name,
        "gender": GENDER_LABELS.get(astrolabe.gender, astrolabe.gender),
        "solarDate": astrolabe.solar_date,
        "lunarDate": astrolabe.lunar_date,
        "chineseDate": astrolabe.chinese_date,
        "time": astrolabe.time,
        "timeRange": astrolabe.time_range,
        "zodiac": astrolabe.zodiac,
        "sign": astrolabe.sign,
        "soul": astrolabe.soul,
        "body": astrolabe.body,
        "soulPalaceEarthlyBranch": astrolabe.earthly_branch_of_soul_palace,
        "bodyPalaceEarthlyBranch": astrolabe.earthly_branch_of_body_palace,
        "config": config.engine_options(),
    }


def build(
    astrolabe: Astrolabe,
    selection: TargetPalaceSelection,
    config: ChartConfig,
) -> dict[str, Any]:
    """Construit le document d'analyse structuré.

    Paramètres:
    - astrolabe: thème calculé, 运限 inclus à la date de référence.
    - selection: palais cibles (命宫 fixe + sélection utilisateur).
    - config: configuration de session (options de calcul rappelées dans 基础信息).

    Retour: dict ordonné dont les clés de premier niveau sont, dans l'ordre, 基础信息,
    命身与性格参考, 命宫三方四正, 生年四化, 宫干四化, 目标宫位, 运限, 十二宫总览.
    """
    targets = selection.palaces
    horoscope = astrolabe.horoscope

    details = {
        name: {
            "palace": summarize_palace(astrolabe.palace(name)),
            "palaceMutagens": summarize_mutaged_places(astrolabe, astrolabe.palace(name)),
            "surrounded": summarize_surrounded(astrolabe, name),
        }
        for name in targets
    }

    return {
        "基础信息": _basic_info(astrolabe, config),
        "命身与性格参考": {
            "命宫": summarize_palace(astrolabe.palace(LIFE_PALACE)),
            "身宫": summarize_palace(astrolabe.body_palace()),
            "福德宫": summarize_palace(astrolabe.palace(FORTUNE_PALACE)),
            "迁移宫": summarize_palace(astrolabe.palace(MIGRATION_PALACE)),
        },
        "命宫三方四正": summarize_surrounded(astrolabe, LIFE_PALACE),
        "生年四化": collect_chart_mutagens(astrolabe),
        "宫干四化": {
            name: summarize_mutaged_places(astrolabe, astrolabe.palace(name)) for name in targets
        },
        "目标宫位": {
            "固定": list(selection.FIXED),
            "补充": list(selection.extras),
            "详情": details,
        },
        "运限": {
            "solarDate": horoscope.solar_date,
            "lunarDate": horoscope.lunar_date,
            "decadal": format_horoscope(horoscope.decadal),
            "yearly": format_horoscope(horoscope.yearly),
            "daily": format_horoscope(horoscope.daily),
        },
        "十二宫总览": [summarize_palace(p) for p in astrolabe.palaces],
    }


def serialize(document: dict[str, Any]) -> str:
    """Sérialisation stable du document (ordre d'insertion, caractères CJK conservés)."""
    return json.dumps(document, ensure_ascii=False, indent=2)
