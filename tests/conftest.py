"""Configuration de test pour pytest avec gestion des chemins.

Ce module configure pytest pour résoudre les imports `zwds` en ajoutant la racine du projet au
sys.path, et fournit des stores neufs adossés à un dépôt mémoire avec horloge et identifiants
déterministes.
"""

import os
import sys

import pytest

# Ensure project root is on sys.path so that
# imports like `from zwds...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from tests.fakes import TickingClock, sequential_ids  # noqa: E402
from zwds.domain.chart_store import ChartStore  # noqa: E402
from zwds.domain.config_store import ConfigStore  # noqa: E402
from zwds.domain.entities import BirthInput  # noqa: E402
from zwds.infra.repositories import InMemoryDocumentRepo  # noqa: E402


@pytest.fixture
def repo() -> InMemoryDocumentRepo:
    return InMemoryDocumentRepo()


@pytest.fixture
def store(repo) -> ChartStore:
    """Store de thèmes vide, horloge et ids déterministes."""
    return ChartStore(repo, clock=TickingClock(), id_factory=sequential_ids())


@pytest.fixture
def config_store(repo) -> ConfigStore:
    return ConfigStore(repo)


@pytest.fixture
def birth_a() -> BirthInput:
    """Naissance de référence: A, homme, 1990-01-01 00h, calendrier solaire."""
    return BirthInput(
        name="A",
        gender="male",
        calendar_type="solar",
        year=1990,
        month=1,
        day=1,
        hour=0,
        leap_month_fix=False,
    )


@pytest.fixture
def birth_lunar() -> BirthInput:
    return BirthInput(
        name="李四",
        gender="female",
        calendar_type="lunar",
        year=1988,
        month=8,
        day=15,
        hour=14,
    )
