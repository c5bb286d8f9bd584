"""Galería de imágenes por card."""

from typing import Optional


class ImageGallery:
    """
    Índice de imagen activa de una card.

    El índice siempre queda dentro de [0, n-1]; con una sola imagen (o
    ninguna) la navegación no hace nada.
    """

    def __init__(self, image_urls: Optional[list[str]] = None, active_index: int = 0):
        self.image_urls = list(image_urls or [])
        self.active_index = 0
        self.select(active_index)

    @property
    def count(self) -> int:
        return len(self.image_urls)

    @property
    def current(self) -> Optional[str]:
        if not self.image_urls:
            return None
        return self.image_urls[self.active_index]

    @property
    def can_navigate(self) -> bool:
        return self.count > 1

    @property
    def has_next(self) -> bool:
        return self.can_navigate and self.active_index < self.count - 1

    @property
    def has_back(self) -> bool:
        return self.can_navigate and self.active_index > 0

    def select(self, index: int) -> int:
        if self.count == 0:
            self.active_index = 0
        else:
            self.active_index = max(0, min(index, self.count - 1))
        return self.active_index

    def next(self) -> int:
        if self.has_next:
            self.active_index += 1
        return self.active_index

    def back(self) -> int:
        if self.has_back:
            self.active_index -= 1
        return self.active_index

    def replace_images(self, image_urls: list[str]) -> None:
        """Cambia las imágenes conservando el índice si sigue siendo válido."""
        self.image_urls = list(image_urls or [])
        self.select(self.active_index)

    def label(self) -> str:
        if not self.image_urls:
            return "No images"
        return f"Image {self.active_index + 1}/{self.count}"
