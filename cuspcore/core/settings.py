"""Définition et chargement des paramètres de configuration du moteur.

Objectif du module
------------------
- Centraliser les paramètres (env/.env) via Pydantic Settings
- Résoudre le fichier `.env` à utiliser selon la stratégie: ENV_FILE > .env.{APP_ENV} > .env
"""

import os
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Détermination du fichier .env à utiliser avec priorité:
# 1) ENV_FILE (chemin explicite)
# 2) .env.{APP_ENV} si présent
# 3) .env (défaut)
_cwd = Path.cwd()
_env_file_from_env = os.getenv("ENV_FILE")
if _env_file_from_env:
    _ENV_FILE_PATH = _env_file_from_env
else:
    _app_env = os.getenv("APP_ENV", "dev")
    _candidate_specific = _cwd / f".env.{_app_env}"
    _candidate_default = _cwd / ".env"
    if _candidate_specific.exists():
        _ENV_FILE_PATH = _candidate_specific
    else:
        _ENV_FILE_PATH = _candidate_default

# Bornes du timeout par requête vers le store distant (secondes)
STORE_TIMEOUT_MIN_S = 1.0
STORE_TIMEOUT_MAX_S = 15.0


class Settings(BaseSettings):
    """Modèle de configuration chargé depuis l'environnement et .env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
    )
    APP_NAME: str = "cuspcore"
    APP_ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # Store distant (API PostgREST / Supabase)
    SUPABASE_URL: str | None = None
    SUPABASE_ANON_KEY: str | None = None
    DAILY_TABLE: str = "horoscope_cache"
    MONTHLY_TABLE: str = "monthly_forecasts"
    MONTHLY_HEMISPHERE_STYLE: str = "short"  # "short" (NH/SH) | "full" (Northern/Southern)
    STORE_TIMEOUT_S: float = 12.0

    # Cache local
    REDIS_URL: str | None = None
    REQUIRE_REDIS: bool = False
    CACHE_TTL_S: int = 172800

    # Résolution
    DEFAULT_HEMISPHERE: str = "Southern"
    USER_TIMEZONE: str | None = None
    MOON_REFERENCE_TZ: str = "Australia/Sydney"

    @field_validator("STORE_TIMEOUT_S")
    @classmethod
    def _clamp_store_timeout(cls, value: float) -> float:
        """Borne le timeout réseau dans l'intervalle autorisé."""
        return max(STORE_TIMEOUT_MIN_S, min(float(value), STORE_TIMEOUT_MAX_S))

    @field_validator("MONTHLY_HEMISPHERE_STYLE")
    @classmethod
    def _check_hemisphere_style(cls, value: str) -> str:
        style = value.strip().lower()
        if style not in ("short", "full"):
            raise ValueError("MONTHLY_HEMISPHERE_STYLE doit valoir 'short' ou 'full'")
        return style


def get_settings() -> Settings:
    """Construit et retourne la configuration du moteur."""
    return Settings()
