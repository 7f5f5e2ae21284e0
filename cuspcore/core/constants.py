"""Constantes partagées pour éviter les valeurs magiques dans le code.

Ce module regroupe les signes du zodiaque, les glyphes de tiret rencontrés dans les libellés et les
seuils utilisés par les calculs lunaires.
"""

ZODIAC_SIGNS = (
    "Aries",
    "Taurus",
    "Gemini",
    "Cancer",
    "Leo",
    "Virgo",
    "Libra",
    "Scorpio",
    "Sagittarius",
    "Capricorn",
    "Aquarius",
    "Pisces",
)
DEGREES_PER_SIGN = 30.0
FULL_CIRCLE = 360.0

# Tirets: canonique (demi-cadratin) et alternatif (trait d'union des données historiques)
CANONICAL_DASH = "–"
ALTERNATE_DASH = "-"
DASH_GLYPHS = ("-", "‐", "‑", "‒", "–", "—", "―", "−")
CUSP_SUFFIX = "Cusp"

HEMISPHERES = ("Northern", "Southern")
HEMISPHERE_CODES = {"Northern": "NH", "Southern": "SH"}

# Phases lunaires: valeurs de quart dans [0, 1) et tolérance de nommage
NEW_MOON = "New Moon"
WAXING_CRESCENT = "Waxing Crescent"
FIRST_QUARTER = "First Quarter"
WAXING_GIBBOUS = "Waxing Gibbous"
FULL_MOON = "Full Moon"
WANING_GIBBOUS = "Waning Gibbous"
LAST_QUARTER = "Last Quarter"
WANING_CRESCENT = "Waning Crescent"
PHASE_CYCLE = (
    NEW_MOON,
    WAXING_CRESCENT,
    FIRST_QUARTER,
    WAXING_GIBBOUS,
    FULL_MOON,
    WANING_GIBBOUS,
    LAST_QUARTER,
    WANING_CRESCENT,
)
QUARTER_TARGETS = (
    (NEW_MOON, 0.0),
    (FIRST_QUARTER, 0.25),
    (FULL_MOON, 0.5),
    (LAST_QUARTER, 0.75),
)
QUARTER_TOLERANCE = 0.0125
QUARTER_SEARCH_MAX_HOURS = 24 * 35
QUARTER_FALLBACK_DAYS = 14

# Clés de cache
CACHE_KIND_DAILY = "daily"
CACHE_KIND_MONTHLY = "monthly"
ANON_SCOPE = "anon"
LEGACY_CACHE_PREFIXES = ("userData", "monthly_SH_", "monthly_NH_")
