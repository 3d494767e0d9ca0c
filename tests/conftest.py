import asyncio
from typing import Dict, Iterable, Optional, Tuple
from unittest.mock import AsyncMock

import pytest
from werkzeug.security import generate_password_hash

from bannerscout.banners.cache import ResultCache
from bannerscout.banners.models import ImageCandidate, SizeRange, VerifiedImage, derive_filename
from bannerscout.banners.resolver import BannerResolver
from bannerscout.config.settings import Settings


class FakeSession:
    """Stands in for aiohttp.ClientSession; fake providers never use it."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeProvider:
    def __init__(self, name: str = "imdb", domain: str = "imdb.com", incremental: bool = True,
                 media_scoped: bool = False, trust: bool = False, batch_size: int = 3):
        self.name = name
        self.domain = domain
        self.supports_incremental_load = incremental
        self.media_scoped_ids = media_scoped
        self.trust_declared_dimensions = trust
        self.verify_batch_size = batch_size
        self.filename_suffix = None
        self.search = AsyncMock(return_value=[])
        self.list_images = AsyncMock(return_value=[])


class FakeVerifier:
    """Accepts candidates by a fixed address -> (width, height) table."""

    def __init__(self, sizes: Dict[str, Tuple[int, int]], fail: Iterable[str] = ()):
        self.sizes = sizes
        self.fail = set(fail)
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def verify(self, session, candidate: ImageCandidate, title_name: str, source_domain: str,
                     size_range: SizeRange, trust_declared: bool = False,
                     filename_suffix: Optional[str] = None) -> Optional[VerifiedImage]:
        self.calls.append(candidate.address)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if candidate.address in self.fail:
                raise asyncio.TimeoutError()
            size = self.sizes.get(candidate.address)
            if size is None or not size_range.contains(*size):
                return None
            return make_image(candidate.address, *size, title_name=title_name, domain=source_domain)
        finally:
            self.in_flight -= 1


def make_image(address: str, width: int, height: int, title_name: str = "Inception",
               domain: str = "imdb.com") -> VerifiedImage:
    return VerifiedImage(
        address=address,
        width=width,
        height=height,
        title_name=title_name,
        source_domain=domain,
        derived_filename=derive_filename(title_name, width, height),
    )


def candidates(*addresses: str):
    return [ImageCandidate(address=address) for address in addresses]


@pytest.fixture
def cache() -> ResultCache:
    return ResultCache(ttl_seconds=3600, check_period_seconds=120)


@pytest.fixture
def imdb_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def tmdb_provider() -> FakeProvider:
    return FakeProvider(name="tmdb", domain="tmdb.org", incremental=False, media_scoped=True,
                        trust=True, batch_size=15)


@pytest.fixture
def make_resolver(cache, imdb_provider, tmdb_provider):
    def _make(verifier, **kwargs) -> BannerResolver:
        return BannerResolver(
            cache=cache,
            providers={'imdb': imdb_provider, 'tmdb': tmdb_provider},
            verifier=verifier,
            batch_pause=0,
            session_factory=FakeSession,
            **kwargs,
        )
    return _make


@pytest.fixture
def app_settings() -> Settings:
    return Settings(
        auth_username="admin",
        auth_password_hash=generate_password_hash("secret"),
        flask_secret_key="test-secret",
        tmdb_api_key="",
    )
