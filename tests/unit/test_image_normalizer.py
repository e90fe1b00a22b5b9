"""Unit tests for image normalization."""

from io import BytesIO
from unittest.mock import patch

import pytest
from PIL import Image

from src.services import image_normalizer
from src.services.image_normalizer import (
    NoOpImageNormalizer,
    PillowImageNormalizer,
    get_image_normalizer,
    safe_execute_sync,
)


def make_image(width: int, height: int, fmt: str = "JPEG", mode: str = "RGB") -> bytes:
    output = BytesIO()
    Image.new(mode, (width, height), color=(200, 80, 40) if mode == "RGB" else None).save(output, format=fmt)
    return output.getvalue()


def dimensions(data: bytes) -> tuple[int, int]:
    return Image.open(BytesIO(data)).size


class TestPillowImageNormalizer:
    """Test downsampling behavior."""

    def test_landscape_capped_at_700(self):
        result = PillowImageNormalizer().normalize(make_image(2800, 1400))
        assert dimensions(result) == (700, 350)

    def test_portrait_capped_at_700(self):
        result = PillowImageNormalizer().normalize(make_image(1000, 4000))
        assert dimensions(result) == (175, 700)

    def test_aspect_ratio_preserved_within_rounding(self):
        width, height = dimensions(PillowImageNormalizer().normalize(make_image(3024, 4032)))
        assert height == 700
        assert abs(width / height - 3024 / 4032) < 0.01

    def test_small_image_returned_unchanged(self):
        original = make_image(640, 480)
        assert PillowImageNormalizer().normalize(original) is original

    def test_exactly_at_cap_unchanged(self):
        original = make_image(700, 300)
        assert PillowImageNormalizer().normalize(original) == original

    def test_png_stays_png(self):
        result = PillowImageNormalizer().normalize(make_image(1400, 1400, fmt="PNG"))
        assert Image.open(BytesIO(result)).format == "PNG"

    def test_webp_stays_webp(self):
        result = PillowImageNormalizer().normalize(make_image(1400, 700, fmt="WEBP"))
        img = Image.open(BytesIO(result))
        assert img.format == "WEBP"
        assert img.size == (700, 350)

    def test_unreadable_bytes_returned_unchanged(self, caplog):
        garbage = b"definitely not an image"
        assert PillowImageNormalizer().normalize(garbage) == garbage
        assert "Image normalization" in caplog.text

    def test_exif_orientation_applied_before_resize(self):
        """A landscape-stored photo tagged 'rotate 90' comes out portrait with no tag left."""
        exif = Image.Exif()
        exif[0x0112] = 6
        output = BytesIO()
        Image.new("RGB", (1600, 800), color=(200, 80, 40)).save(output, format="JPEG", exif=exif)

        result = Image.open(BytesIO(PillowImageNormalizer().normalize(output.getvalue())))
        assert result.size == (350, 700)
        assert result.getexif().get(0x0112) is None

    def test_custom_cap(self):
        result = PillowImageNormalizer(max_dimension=100).normalize(make_image(400, 200))
        assert dimensions(result) == (100, 50)

    @pytest.mark.parametrize(
        "size,expected",
        [((1400, 700), (700, 350)), ((700, 1400), (350, 700)), ((5000, 3), (700, 1)), ((1000, 1000), (700, 700))],
    )
    def test_target_size(self, size, expected):
        assert PillowImageNormalizer().target_size(*size) == expected


class TestNoOpImageNormalizer:
    def test_returns_input(self):
        data = make_image(2000, 2000)
        assert NoOpImageNormalizer().normalize(data) is data


class TestGetImageNormalizer:
    """Test implementation selection."""

    def test_pillow_by_default(self):
        with patch.object(image_normalizer.config, "NORMALIZE_IMAGES", True):
            normalizer = get_image_normalizer()
        assert isinstance(normalizer, PillowImageNormalizer)
        assert normalizer.max_dimension == image_normalizer.config.MAX_IMAGE_DIMENSION

    def test_disabled_by_config(self):
        with patch.object(image_normalizer.config, "NORMALIZE_IMAGES", False):
            assert isinstance(get_image_normalizer(), NoOpImageNormalizer)

    def test_noop_without_pillow(self):
        with patch.object(image_normalizer.config, "NORMALIZE_IMAGES", True), patch.object(
            image_normalizer, "HAS_PIL", False
        ):
            assert isinstance(get_image_normalizer(), NoOpImageNormalizer)


class TestSafeExecuteSync:
    def test_returns_result(self):
        assert safe_execute_sync(lambda: 5, "op") == 5

    def test_returns_default_on_error(self):
        def boom():
            raise RuntimeError("bad")

        assert safe_execute_sync(boom, "op", default_return="fallback") == "fallback"
