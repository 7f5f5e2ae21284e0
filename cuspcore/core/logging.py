"""Configuration de logging basée sur structlog.

Objectif du module
------------------
- Fournir des logs structurés lisibles en développement (console) et en JSON ailleurs.
- Propager le contexte lié via `structlog.contextvars` (application, environnement).
"""

import logging
import sys

import structlog


def setup_logging(level: str = "INFO", json_output: bool = False):
    """Configure structlog pour produire des logs détaillés et filtrables.

    Paramètres:
    - level: niveau minimal (nom `logging`, ex. "DEBUG", "INFO").
    - json_output: rendu JSON (une ligne par événement) au lieu du rendu console.
    """
    min_level = logging.getLevelName(level.upper())
    if not isinstance(min_level, int):
        min_level = logging.INFO
    renderer = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def bind_app_context(app_name: str, app_env: str) -> None:
    """Attache le nom et l'environnement de l'application à tous les logs suivants."""
    structlog.contextvars.bind_contextvars(app=app_name, env=app_env)
