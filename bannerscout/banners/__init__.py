"""Banner resolution: size presets, verification, caching and orchestration."""

from bannerscout.banners.cache import ResultCache
from bannerscout.banners.models import ImageCandidate, SearchResultEntry, SizeRange, VerifiedImage
from bannerscout.banners.resolver import BannerResolver
from bannerscout.banners.verifier import ImageVerifier

__all__ = ['ResultCache', 'ImageCandidate', 'SearchResultEntry', 'SizeRange', 'VerifiedImage',
           'BannerResolver', 'ImageVerifier']
