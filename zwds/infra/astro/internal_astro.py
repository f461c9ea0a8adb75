"""
Moteur astrologique interne avec génération pseudo-aléatoire.

Ce module implémente un moteur 紫微斗数 simplifié: la trame du thème (palais de vie et de corps,
tiges des palais par 五虎遁, 四化 de l'année) suit les règles classiques, tandis que la répartition
des étoiles est pseudo-aléatoire et entièrement déterminée par l'identité du thème. Il sert de
moteur par défaut pour les tests et le développement.
"""

import random
from datetime import date, datetime

from lunardate import LunarDate

from zwds.core.constants import MUTAGEN_LABELS, PALACE_COUNT, PALACE_NAMES
from zwds.domain.astrolabe import (
    STEM_MUTAGENS,
    Astrolabe,
    Horoscope,
    HoroscopeItem,
    Palace,
    Star,
)
from zwds.domain.entities import BirthInput, ChartConfig
from zwds.domain.identity import chinese_hour_index, derive_solar_instant, identity_key

HEAVENLY_STEMS = "甲乙丙丁戊己庚辛壬癸"
EARTHLY_BRANCHES = "子丑寅卯辰巳午未申酉戌亥"
ZODIAC = "鼠牛虎兔龙蛇马羊猴鸡狗猪"

# Les palais sont indexés à partir de 寅
FIRST_PALACE_BRANCH = 2

MAJOR_STARS = (
    "紫微",
    "天机",
    "太阳",
    "武曲",
    "天同",
    "廉贞",
    "天府",
    "太阴",
    "贪狼",
    "巨门",
    "天相",
    "天梁",
    "七杀",
    "破军",
)
MINOR_STARS = ("左辅", "右弼", "文昌", "文曲", "天魁", "天钺", "禄存", "天马", "擎羊", "陀罗")
ADJECTIVE_STARS = ("红鸾", "天喜", "天姚", "咸池", "孤辰", "寡宿", "天刑", "天哭")
BRIGHTNESS = ("庙", "旺", "得", "利", "平", "不", "陷")

# 五虎遁: tige du palais 寅 selon la tige de l'année
TIGER_STEM = {"甲": 2, "己": 2, "乙": 4, "庚": 4, "丙": 6, "辛": 6, "丁": 8, "壬": 8, "戊": 0, "癸": 0}

# 命主 par branche du palais de vie, 身主 par branche de l'année
SOUL_MASTER = dict(zip(EARTHLY_BRANCHES, (
    "贪狼", "巨门", "禄存", "文曲", "廉贞", "武曲", "破军", "武曲", "廉贞", "文曲", "巨门", "禄存",
), strict=True))
BODY_MASTER = dict(zip(EARTHLY_BRANCHES, (
    "火星", "天相", "天梁", "天同", "文昌", "天机", "火星", "天相", "天梁", "天同", "文昌", "天机",
), strict=True))

SIGNS = (
    ((1, 20), "水瓶座"),
    ((2, 19), "双鱼座"),
    ((3, 21), "白羊座"),
    ((4, 20), "金牛座"),
    ((5, 21), "双子座"),
    ((6, 22), "巨蟹座"),
    ((7, 23), "狮子座"),
    ((8, 23), "处女座"),
    ((9, 23), "天秤座"),
    ((10, 24), "天蝎座"),
    ((11, 23), "射手座"),
    ((12, 22), "摩羯座"),
)
DECADE_YEARS = 10


def _sign(day: date) -> str:
    sign = "摩羯座"
    for start, name in SIGNS:
        if (day.month, day.day) >= start:
            sign = name
    return sign


def _ganzhi(year: int) -> tuple[str, str]:
    return HEAVENLY_STEMS[(year - 4) % 10], EARTHLY_BRANCHES[(year - 4) % 12]


def _branch_at(index: int) -> str:
    return EARTHLY_BRANCHES[(index + FIRST_PALACE_BRANCH) % PALACE_COUNT]


def _lunar_label(lunar: LunarDate) -> str:
    leap = "闰" if lunar.is_leap_month else ""
    return f"{lunar.year}年{leap}{lunar.month}月{lunar.day}日"


def _time_range(hour_index: int) -> str:
    start = (hour_index * 2 - 1) % 24
    return f"{start:02d}:00~{(start + 2) % 24:02d}:00"


class InternalAstroEngine:
    """
    Moteur astrologique interne avec génération pseudo-aléatoire.

    Deux appels avec la même naissance, les mêmes options et la même date de référence produisent
    un thème identique.
    """

    def __init__(self, seed: int | None = None):
        """
        Initialise le moteur avec une graine optionnelle.

        Args:
            seed: Graine combinée à la clé d'identité du thème (optionnel).
        """
        self.seed = seed

    def compute(self, birth: BirthInput, config: ChartConfig, reference: datetime) -> Astrolabe:
        """
        Calcule le thème complet et ses 运限 à la date de référence.

        Args:
            birth: Données de naissance.
            config: Options de calcul (transmises telles quelles, sans effet sur ce moteur).
            reference: Date de référence des 运限.

        Returns:
            Astrolabe: Thème calculé.
        """
        instant = derive_solar_instant(birth)
        rng = random.Random(f"{self.seed}:{identity_key(birth, instant)}")
        lunar = LunarDate.from_solar_date(instant.year, instant.month, instant.day)
        hour_index = chinese_hour_index(birth.hour)
        year_stem, year_branch = _ganzhi(lunar.year)

        soul_index = (lunar.month - 1 - hour_index) % PALACE_COUNT
        body_index = (lunar.month - 1 + hour_index) % PALACE_COUNT
        palaces = self._palaces(rng, year_stem, year_branch, soul_index, body_index)

        hour_branch = EARTHLY_BRANCHES[hour_index]
        return Astrolabe(
            name=birth.name,
            gender=birth.gender,
            solar_date=instant.date().isoformat(),
            lunar_date=_lunar_label(lunar),
            chinese_date=f"{year_stem}{year_branch}年 {lunar.month}月 {lunar.day}日 {hour_branch}时",
            time=f"{hour_branch}时",
            time_range=_time_range(hour_index),
            zodiac=ZODIAC[EARTHLY_BRANCHES.index(year_branch)],
            sign=_sign(instant.date()),
            soul=SOUL_MASTER[_branch_at(soul_index)],
            body=BODY_MASTER[year_branch],
            earthly_branch_of_soul_palace=_branch_at(soul_index),
            earthly_branch_of_body_palace=_branch_at(body_index),
            palaces=palaces,
            horoscope=self._horoscope(palaces, soul_index, lunar.year, reference),
        )

    def _palaces(
        self,
        rng: random.Random,
        year_stem: str,
        year_branch: str,
        soul_index: int,
        body_index: int,
    ) -> list[Palace]:
        birth_mutagens = dict(zip(STEM_MUTAGENS[year_stem], MUTAGEN_LABELS, strict=True))

        def place(names: tuple[str, ...], star_type: str, bright: bool) -> list[list[Star]]:
            slots: list[list[Star]] = [[] for _ in range(PALACE_COUNT)]
            for name in names:
                slots[rng.randrange(PALACE_COUNT)].append(
                    Star(
                        name=name,
                        type=star_type,
                        brightness=rng.choice(BRIGHTNESS) if bright else "",
                        mutagen=birth_mutagens.get(name, ""),
                    )
                )
            return slots

        majors = place(MAJOR_STARS, "major", True)
        minors = place(MINOR_STARS, "soft", True)
        adjectives = place(ADJECTIVE_STARS, "adjective", False)
        first_stem = TIGER_STEM[year_stem]

        palaces = []
        for index in range(PALACE_COUNT):
            branch = _branch_at(index)
            palaces.append(
                Palace(
                    index=index,
                    name=PALACE_NAMES[(soul_index - index) % PALACE_COUNT],
                    heavenly_stem=HEAVENLY_STEMS[(first_stem + index) % 10],
                    earthly_branch=branch,
                    is_body_palace=index == body_index,
                    is_original_palace=branch == year_branch,
                    major_stars=majors[index],
                    minor_stars=minors[index],
                    adjective_stars=adjectives[index],
                )
            )
        return palaces

    def _horoscope(
        self, palaces: list[Palace], soul_index: int, birth_year: int, reference: datetime
    ) -> Horoscope:
        lunar = LunarDate.from_solar_date(reference.year, reference.month, reference.day)
        age = max(lunar.year - birth_year + 1, 1)
        decadal = (soul_index + (age - 1) // DECADE_YEARS) % PALACE_COUNT
        yearly = (EARTHLY_BRANCHES.index(_ganzhi(lunar.year)[1]) - FIRST_PALACE_BRANCH) % PALACE_COUNT
        daily = (yearly + reference.timetuple().tm_yday) % PALACE_COUNT

        def item(index: int, name: str) -> HoroscopeItem:
            palace = palaces[index]
            return HoroscopeItem(
                index=index,
                name=name,
                heavenly_stem=palace.heavenly_stem,
                earthly_branch=palace.earthly_branch,
                palace_names=[PALACE_NAMES[(index - i) % PALACE_COUNT] for i in range(PALACE_COUNT)],
                mutagen=list(STEM_MUTAGENS[palace.heavenly_stem]),
            )

        return Horoscope(
            solar_date=reference.date().isoformat(),
            lunar_date=_lunar_label(lunar),
            decadal=item(decadal, "大限"),
            yearly=item(yearly, "流年"),
            daily=item(daily, "流日"),
        )
