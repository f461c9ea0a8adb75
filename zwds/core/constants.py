"""Constantes partagées du domaine 紫微斗数 (clés de stockage, noms de palais, contrat IA)."""

# Clés de stockage durable
CHARTS_STORAGE_KEY = "zwds-saved-charts"
SETTINGS_STORAGE_KEY = "zwds-settings"

# Les douze palais, dans l'ordre d'attribution à partir du palais de vie
PALACE_NAMES: tuple[str, ...] = (
    "命宫",
    "兄弟",
    "夫妻",
    "子女",
    "财帛",
    "疾厄",
    "迁移",
    "仆役",
    "官禄",
    "田宅",
    "福德",
    "父母",
)
LIFE_PALACE = "命宫"
FORTUNE_PALACE = "福德"
MIGRATION_PALACE = "迁移"
PALACE_COUNT = 12

# Quatre transformations (四化), ordre canonique
MUTAGEN_LABELS: tuple[str, ...] = ("禄", "权", "科", "忌")

# Décalages du 三方四正 par rapport au palais cible
OPPOSITE_OFFSET = 6
WEALTH_OFFSET = 8
CAREER_OFFSET = 4

# Échange avec le service d'interprétation
DEFAULT_TEMPERATURE = 0.7
DEFAULT_ENDPOINT_PATH = "/api/interpret"

# Noms d'affichage des enregistrements
DISPLAY_NAME_SUFFIX = "-命盘"
UNNAMED_DISPLAY_NAME = "未命名命盘"
