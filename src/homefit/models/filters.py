"""
Estado de filtros del listado de matches.

Puramente del lado del cliente: se serializa a query params al aplicar.
"""

from pydantic import BaseModel, Field

from homefit.config import DEFAULT_PRICE_RANGE


class MatchFilters(BaseModel):
    """Rango de precio + cuatro facetas de selección múltiple."""

    price_range: tuple[int, int] = Field(default=DEFAULT_PRICE_RANGE)
    bedrooms: list[str] = Field(default_factory=list)
    bathrooms: list[str] = Field(default_factory=list)
    neighborhoods: list[str] = Field(default_factory=list)
    amenities: list[str] = Field(default_factory=list)

    @classmethod
    def defaults(cls) -> "MatchFilters":
        return cls()

    def is_default(self) -> bool:
        return self == MatchFilters()

    @property
    def active_count(self) -> int:
        """Cantidad de valores seleccionados (el rango cuenta como uno)."""
        count = len(self.bedrooms) + len(self.bathrooms)
        count += len(self.neighborhoods) + len(self.amenities)
        if tuple(self.price_range) != DEFAULT_PRICE_RANGE:
            count += 1
        return count

    def to_query_params(self) -> dict[str, str]:
        """
        Convierte los filtros a parámetros de la API.

        El precio solo se envía si difiere del rango por defecto y las
        facetas vacías se omiten.
        """
        params: dict[str, str] = {}

        min_price, max_price = self.price_range
        if (min_price, max_price) != DEFAULT_PRICE_RANGE:
            params["minPrice"] = str(min_price)
            params["maxPrice"] = str(max_price)

        for key, values in (
            ("bedrooms", self.bedrooms),
            ("bathrooms", self.bathrooms),
            ("neighborhoods", self.neighborhoods),
            ("amenities", self.amenities),
        ):
            if values:
                params[key] = ",".join(values)

        return params
