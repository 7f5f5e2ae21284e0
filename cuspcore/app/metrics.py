"""
Métriques Prometheus du moteur.

Ce module définit les compteurs et histogrammes exposés par le moteur de résolution. L'exposition
HTTP (`/metrics`) reste à la charge de l'hôte: `render_latest()` retourne le format texte.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)

RESOLUTIONS_TOTAL = Counter(
    "cuspcore_resolutions_total",
    "Total content resolutions by final status",
    ["kind", "status"],
)
CACHE_LOOKUPS_TOTAL = Counter(
    "cuspcore_cache_lookups_total",
    "Local cache lookups",
    ["kind", "result"],  # hit | miss | rejected | error
)
STORE_QUERIES_TOTAL = Counter(
    "cuspcore_store_queries_total",
    "Remote store queries",
    ["table", "result"],  # hit | miss | error
)
STORE_QUERY_SECONDS = Histogram(
    "cuspcore_store_query_seconds",
    "Latency of remote store queries",
    ["table"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0],
)
STALE_RESULTS_TOTAL = Counter(
    "cuspcore_stale_results_total",
    "Resolutions superseded by a newer one and discarded",
    ["kind"],
)
PLANET_FALLBACKS = Counter(
    "cuspcore_planet_fallbacks_total",
    "Planet positions served from cache or dropped",
    ["reason"],
)


def render_latest() -> tuple[bytes, str]:
    """Retourne (contenu, content-type) au format d'exposition Prometheus."""
    return generate_latest(), CONTENT_TYPE_LATEST
