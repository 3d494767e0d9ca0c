import pytest

from bannerscout.banners import size_policy
from bannerscout.banners.models import SizeRange

from tests.conftest import make_image


@pytest.mark.parametrize("name", [None, "", "   ", "no-such-preset", 42, ["default"]])
def test_resolve_falls_back_to_default(name):
    assert size_policy.resolve(name) == size_policy.SIZE_PRESETS["default"]


def test_resolve_is_case_and_whitespace_insensitive():
    assert size_policy.resolve(" 1920X1080 ") == size_policy.SIZE_PRESETS["1920x1080"]


def test_every_preset_is_well_formed():
    for name in size_policy.available_presets():
        size_range = size_policy.resolve(name)
        assert size_range.min_width <= size_range.max_width
        assert size_range.min_height <= size_range.max_height


def test_default_preset_is_landscape_banner_shape():
    default = size_policy.resolve("default")
    assert default.contains(2000, 1000)
    assert not default.contains(1280, 720)
    assert not default.contains(1000, 1500)


def test_custom_preset_accepts_anything():
    custom = size_policy.resolve("custom")
    assert custom.contains(0, 0)
    assert custom.contains(100000, 100000)


def test_size_range_rejects_inverted_bounds():
    with pytest.raises(ValueError):
        SizeRange(min_width=100, max_width=50, min_height=0, max_height=10)


def test_size_range_bounds_are_inclusive():
    size_range = SizeRange(min_width=10, max_width=20, min_height=10, max_height=20)
    assert size_range.contains(10, 20)
    assert not size_range.contains(9, 15)
    assert not size_range.contains(15, 21)


def test_filter_images_keeps_order_and_only_members():
    images = [
        make_image("a", 2000, 1000),
        make_image("b", 800, 600),
        make_image("c", 2200, 900),
    ]
    size_range = size_policy.resolve("default")

    filtered = size_policy.filter_images(images, size_range)

    assert [image.address for image in filtered] == ["a", "c"]
    assert all(size_range.contains(image.width, image.height) for image in filtered)
    assert len(images) == 3


def test_filter_images_with_custom_returns_everything():
    images = [make_image(str(i), 700 + i, 400 + i) for i in range(10)]
    assert size_policy.filter_images(images, size_policy.resolve("custom")) == images
