"""
Normalisation des libellés de signe/cuspide et génération des variantes de clé.

Les libellés arrivent sous des formes hétérogènes ("aries - taurus   cusp", "Aries–Taurus Cusp",
"Aries—Taurus"). Ce module produit une forme canonique unique puis la liste ordonnée des clés
candidates à tester contre la colonne `sign` du store.

Règle de sûreté: pour une cuspide, aucune variante à signe unique n'est produite sans accord
explicite de l'appelant (`allow_pure_sign_fallback_for_cusp=True`).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from cuspcore.core.constants import (
    ALTERNATE_DASH,
    CANONICAL_DASH,
    CUSP_SUFFIX,
    DASH_GLYPHS,
    HEMISPHERE_CODES,
    HEMISPHERES,
)

_DASH_RE = re.compile("[" + "".join(re.escape(g) for g in DASH_GLYPHS) + "]")
_CUSP_SUFFIX_RE = re.compile(r"(?:^|\s)cusp$", re.IGNORECASE)
_SPACES_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class NormalizedLabel:
    """Forme canonique d'un libellé.

    - canonical_no_suffix: segments titrés joints par le tiret canonique ("Aries–Taurus").
    - canonical_with_suffix: même chose suivie de " Cusp" si le mot était présent, sinon None.
    - parts: noms des segments (1 pour un signe pur, 2 pour une cuspide).
    """

    canonical_no_suffix: str
    canonical_with_suffix: str | None
    parts: tuple[str, ...]

    @property
    def is_empty(self) -> bool:
        return not self.canonical_no_suffix

    @property
    def is_cusp(self) -> bool:
        return len(self.parts) > 1 or self.canonical_with_suffix is not None

    @property
    def primary(self) -> str | None:
        return self.parts[0] if self.parts else None


EMPTY_LABEL = NormalizedLabel(canonical_no_suffix="", canonical_with_suffix=None, parts=())


def _title(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def normalize_label(label: str | None) -> NormalizedLabel:
    """Normalise un libellé brut en forme canonique.

    Étapes: espaces réduits, tirets unifiés, suffixe "cusp" détecté et retiré, chaque mot de
    chaque segment mis en casse titre, segments rejoints par le tiret canonique.
    """
    if not label:
        return EMPTY_LABEL
    text = _SPACES_RE.sub(" ", label).strip()
    text = _DASH_RE.sub(CANONICAL_DASH, text)

    has_suffix = bool(_CUSP_SUFFIX_RE.search(text))
    if has_suffix:
        text = _CUSP_SUFFIX_RE.sub("", text).strip()

    parts: list[str] = []
    for segment in text.split(CANONICAL_DASH):
        words = [_title(w) for w in segment.split(" ") if w]
        if words:
            parts.append(" ".join(words))
    if not parts:
        return EMPTY_LABEL

    no_suffix = CANONICAL_DASH.join(parts)
    with_suffix = f"{no_suffix} {CUSP_SUFFIX}" if has_suffix else None
    return NormalizedLabel(
        canonical_no_suffix=no_suffix,
        canonical_with_suffix=with_suffix,
        parts=tuple(parts),
    )


def is_single_segment(variant: str) -> bool:
    """Indique si une clé ne désigne qu'un seul signe (suffixe "Cusp" ignoré)."""
    suffix = f" {CUSP_SUFFIX}"
    base = variant[: -len(suffix)] if variant.endswith(suffix) else variant
    return CANONICAL_DASH not in base and ALTERNATE_DASH not in base


def build_lookup_key_variants(
    label: str | None, *, allow_pure_sign_fallback_for_cusp: bool = False
) -> list[str]:
    """Construit les clés candidates, de la plus spécifique à la plus générale.

    Ordre: avec suffixe (tiret canonique), avec suffixe (tiret alternatif), sans suffixe
    (canonique), sans suffixe (alternatif), puis chaque segment seul, uniquement pour un signe
    pur ou si l'appelant l'autorise pour une cuspide. Les doublons sont retirés en conservant le
    premier rang.
    """
    norm = normalize_label(label)
    if norm.is_empty:
        return []

    candidates: list[str] = []
    if norm.canonical_with_suffix:
        candidates.append(norm.canonical_with_suffix)
        candidates.append(norm.canonical_with_suffix.replace(CANONICAL_DASH, ALTERNATE_DASH))
    candidates.append(norm.canonical_no_suffix)
    candidates.append(norm.canonical_no_suffix.replace(CANONICAL_DASH, ALTERNATE_DASH))

    strict_cusp = norm.is_cusp and not allow_pure_sign_fallback_for_cusp
    if strict_cusp:
        # "Aries Cusp" sans second segment se réduirait à "Aries": interdit
        candidates = [c for c in candidates if not is_single_segment(c)]
    else:
        candidates.extend(norm.parts)

    return list(dict.fromkeys(candidates))


def normalize_hemisphere(value: str | None, default: str = "Southern") -> str:
    """Ramène "NH"/"SH"/"Northern"/"Southern" (toute casse) à la forme du store quotidien."""
    v = (value or "").strip().lower()
    if v in ("northern", "nh", "north", "n"):
        return "Northern"
    if v in ("southern", "sh", "south", "s"):
        return "Southern"
    return default if default in HEMISPHERES else "Southern"


def hemisphere_code(hemisphere: str) -> str:
    """Retourne le code court ("NH"/"SH") d'un hémisphère."""
    return HEMISPHERE_CODES[normalize_hemisphere(hemisphere)]
