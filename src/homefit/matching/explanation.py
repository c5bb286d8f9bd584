"""
Parser de explicaciones de match.

El backend manda una explicación en texto libre, una razón por línea,
con un emoji como prefijo que indica el tipo de razón. Cuando falta o no
trae ningún prefijo conocido se genera una explicación a partir de los
datos del propio apartment.
"""

from typing import Optional

from homefit.models import Apartment, ExplanationHint, HintType

GOOD_MATCH_THRESHOLD = 80

SIGILS = {
    "✅": HintType.CHECK,
    "❌": HintType.CANCEL,
    "💎": HintType.DIAMOND,
    "🟡": HintType.WARNING,
    "💡": HintType.LIGHTBULB,
}

# Selector de variación que algunos emojis arrastran (ej: "✅️")
_VARIATION_SELECTOR = "\ufe0f"


def _classify(line: str) -> tuple[HintType, str]:
    for sigil, hint_type in SIGILS.items():
        if line.startswith(sigil):
            text = line[len(sigil):].lstrip(_VARIATION_SELECTOR).strip()
            return hint_type, text
    return HintType.INFO, line


def price_band(price: Optional[float]) -> str:
    if price is None:
        return "unknown"
    if price < 1500:
        return "budget-friendly"
    if price <= 2500:
        return "mid-range"
    return "premium"


def _bedroom_text(bedrooms: Optional[str]) -> str:
    if not bedrooms:
        return "unspecified bedrooms"
    if bedrooms.lower() == "studio":
        return "a studio layout"
    return f"{bedrooms} bedroom" + ("" if bedrooms == "1" else "s")


def fallback_explanation(
    match_score: float, apartment: Optional[Apartment]
) -> list[ExplanationHint]:
    """
    Genera razones genéricas a partir del score y del apartment.

    Determinista: depende solo del corte de score y de los campos del
    apartment (precio, dormitorios, barrio, amenities).
    """
    price = apartment.price if apartment else None
    bedrooms = apartment.bedrooms if apartment else None
    neighborhood = (apartment.neighborhood if apartment else None) or "the area you chose"
    band = price_band(price)
    price_text = apartment.price_text if apartment else "price not available"

    if match_score >= GOOD_MATCH_THRESHOLD:
        hints = [
            ExplanationHint(
                type=HintType.CHECK,
                text=f"Fits your budget: {band} at {price_text}",
            ),
            ExplanationHint(
                type=HintType.CHECK,
                text=f"Matches your bedroom needs with {_bedroom_text(bedrooms)}",
            ),
            ExplanationHint(
                type=HintType.CHECK,
                text=f"Located in {neighborhood}, one of your preferred neighborhoods",
            ),
        ]
        if apartment and apartment.amenities:
            shown = ", ".join(apartment.amenities[:3])
            hints.append(
                ExplanationHint(type=HintType.DIAMOND, text=f"Includes amenities: {shown}")
            )
        return hints

    return [
        ExplanationHint(
            type=HintType.CANCEL,
            text=f"Price is outside your ideal range ({band}, {price_text})",
        ),
        ExplanationHint(
            type=HintType.CANCEL,
            text=f"Has {_bedroom_text(bedrooms)}, which may not fit your needs",
        ),
        ExplanationHint(
            type=HintType.LIGHTBULB,
            text="Try widening your price range to see closer matches",
        ),
        ExplanationHint(
            type=HintType.LIGHTBULB,
            text="Consider nearby neighborhoods or a different bedroom count",
        ),
    ]


def parse_explanation(
    explanation: Optional[str],
    match_score: float = 0,
    apartment: Optional[Apartment] = None,
) -> list[ExplanationHint]:
    """
    Convierte la explicación del backend en una lista de razones tipadas.

    Args:
        explanation: Texto con una razón por línea (puede ser None)
        match_score: Score 0-100, usado solo por el fallback
        apartment: Apartment del match, usado solo por el fallback

    Returns:
        Lista ordenada y nunca vacía de ExplanationHint
    """
    lines = [line.strip() for line in (explanation or "").splitlines()]
    lines = [line for line in lines if line]

    hints = [ExplanationHint(type=t, text=text) for t, text in map(_classify, lines)]

    if not any(hint.type != HintType.INFO for hint in hints):
        return fallback_explanation(match_score or 0, apartment)

    return hints
