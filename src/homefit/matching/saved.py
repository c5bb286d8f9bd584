"""Vista de apartments guardados."""

from typing import Optional

import structlog

from homefit.api import REQUEST_ERRORS, SavedListingRepository
from homefit.matching.gallery import ImageGallery
from homefit.models import Apartment

logger = structlog.get_logger()


class SavedCard:
    def __init__(self, apartment: Apartment):
        self.apartment = apartment
        self.gallery = ImageGallery(apartment.image_urls)

    @property
    def apartment_id(self) -> str:
        return self.apartment.id


class SavedListingsView:
    """
    Listado de guardados con quitado optimista.

    Si el backend rechaza el quitado se vuelve a pedir el listado
    completo en lugar de reinsertar la card.
    """

    def __init__(self, saved_listings: SavedListingRepository):
        self.saved_listings = saved_listings
        self.cards: list[SavedCard] = []
        self.loading = False
        self.notice: Optional[str] = None

    async def load(self) -> list[SavedCard]:
        self.loading = True
        try:
            apartments = await self.saved_listings.list_saved()
        except REQUEST_ERRORS as e:
            logger.warning("No se pudieron obtener los guardados", error=str(e))
            apartments = []
        finally:
            self.loading = False
        self.cards = [SavedCard(apartment) for apartment in apartments]
        return self.cards

    def clear(self) -> None:
        self.cards = []
        self.notice = None

    async def unsave(self, apartment_id: str) -> bool:
        """
        Quita un guardado.

        Returns:
            True si el backend confirmó el cambio
        """
        self.cards = [card for card in self.cards if card.apartment_id != apartment_id]
        self.notice = None
        try:
            await self.saved_listings.toggle(apartment_id)
        except REQUEST_ERRORS as e:
            logger.warning(
                "Error quitando guardado, se recarga el listado",
                apartment_id=apartment_id,
                error=str(e),
            )
            self.notice = "Failed to remove the listing. Please try again."
            await self.load()
            return False
        return True

    def card(self, apartment_id: str) -> Optional[SavedCard]:
        for card in self.cards:
            if card.apartment_id == apartment_id:
                return card
        return None

    @property
    def is_empty(self) -> bool:
        return not self.cards
