from bannerscout.banners import fast_reject, size_policy

THUMB = "https://m.media-amazon.com/images/M/MV5BMTM._V1_QL75_UX182_CR0,0,182,268_.jpg"
FULL = "https://m.media-amazon.com/images/M/MV5BMTM._V1_FMjpg_UX2000_.jpg"


def test_parse_hint_takes_largest_value():
    address = "https://x/img._V1_UX100_SX2000_.jpg"
    assert fast_reject.parse_hint(fast_reject.WIDTH_HINT, address) == 2000


def test_parse_hint_without_hint():
    assert fast_reject.parse_hint(fast_reject.HEIGHT_HINT, "https://x/plain.jpg") is None


def test_small_thumbnail_is_rejected():
    assert not fast_reject.might_match(THUMB, size_policy.PLAUSIBLE_RANGE)


def test_full_size_rendition_passes():
    assert fast_reject.might_match(FULL, size_policy.resolve("default"))


def test_address_without_hints_passes():
    assert fast_reject.might_match("https://image.tmdb.org/t/p/original/abc.jpg",
                                   size_policy.resolve("3840x2160"))


def test_height_hint_far_below_minimum_is_rejected():
    address = "https://x/img._V1_SY300_.jpg"
    assert not fast_reject.might_match(address, size_policy.resolve("default"))


def test_tolerance_is_asymmetric():
    default = size_policy.resolve("default")
    # 1600 is within 20% below 1920
    assert fast_reject.might_match("https://x/a._V1_UX1600_.jpg", default)
    # 3500 is within 50% above 2400
    assert fast_reject.might_match("https://x/a._V1_UX3500_.jpg", default)
    assert not fast_reject.might_match("https://x/a._V1_UX3700_.jpg", default)


def test_disabled_filter_passes_everything():
    assert fast_reject.might_match(THUMB, size_policy.PLAUSIBLE_RANGE, enabled=False)
