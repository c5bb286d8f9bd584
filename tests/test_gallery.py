"""
Tests de la galería de imágenes por card
"""

from homefit.matching import ImageGallery


class TestImageGallery:
    def test_navigation_is_clamped(self):
        gallery = ImageGallery(["a", "b", "c"])

        assert gallery.back() == 0
        assert gallery.next() == 1
        assert gallery.next() == 2
        assert gallery.next() == 2
        assert gallery.current == "c"
        assert gallery.label() == "Image 3/3"

    def test_single_image_does_not_navigate(self):
        gallery = ImageGallery(["only"])

        assert not gallery.can_navigate
        assert gallery.next() == 0
        assert gallery.back() == 0

    def test_empty_gallery(self):
        gallery = ImageGallery([])

        assert gallery.current is None
        assert gallery.label() == "No images"
        assert gallery.select(3) == 0

    def test_select_clamps(self):
        gallery = ImageGallery(["a", "b"], active_index=7)
        assert gallery.active_index == 1
        assert gallery.select(-2) == 0

    def test_replace_images_keeps_valid_index(self):
        gallery = ImageGallery(["a", "b", "c"], active_index=2)

        gallery.replace_images(["x", "y"])

        assert gallery.active_index == 1
        assert gallery.has_back
        assert not gallery.has_next
