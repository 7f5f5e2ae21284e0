"""Configuration de test pour pytest avec gestion des chemins.

Ce module ajoute la racine du projet au sys.path et fournit les fixtures communes: store et cache
en mémoire, horloge fixe et résolveur câblé sur ces doubles.
"""

import os
import sys
from datetime import datetime, timezone

import pytest

# Ensure project root is on sys.path so that
# imports like `from cuspcore...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from cuspcore.infra.cache import InMemoryContentCache  # noqa: E402
from cuspcore.infra.content_store import InMemoryContentStore  # noqa: E402
from cuspcore.services.resolver import ContentResolver  # noqa: E402
from tests.fakes import FixedClock  # noqa: E402

FIXED_NOW = datetime(2025, 9, 1, 2, 0, tzinfo=timezone.utc)


@pytest.fixture
def store() -> InMemoryContentStore:
    """Store en mémoire enregistrant chaque requête reçue."""
    return InMemoryContentStore()


@pytest.fixture
def cache() -> InMemoryContentCache:
    return InMemoryContentCache()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(FIXED_NOW)


@pytest.fixture
def resolver(store, cache, clock) -> ContentResolver:
    """Résolveur sans zone utilisateur, horloge locale alignée sur UTC."""
    return ContentResolver(store, cache, device_timezone=timezone.utc, clock=clock)
