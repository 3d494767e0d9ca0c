"""Interface shared by banner providers."""
from typing import List, Optional, Protocol

import aiohttp

from bannerscout.banners.models import ImageCandidate, SearchResultEntry


class ProviderAdapter(Protocol):
    """
    A source of title matches and image candidates.

    The resolver branches on the capability flags, never on the provider's
    identity:

    - supports_incremental_load: list_images accepts page > 1
    - trust_declared_dimensions: candidates carry true sizes, no download needed
    - media_scoped_ids: ids are unique per media type only (movie 123 != tv 123)
    - verify_batch_size: concurrent verifications per batch
    """

    name: str
    domain: str
    supports_incremental_load: bool
    media_scoped_ids: bool
    trust_declared_dimensions: bool
    verify_batch_size: int
    filename_suffix: Optional[str]

    async def search(self, session: aiohttp.ClientSession, query: str) -> List[SearchResultEntry]:
        ...

    async def list_images(
        self,
        session: aiohttp.ClientSession,
        title_id: str,
        page: int = 1,
        media_type: Optional[str] = None,
    ) -> List[ImageCandidate]:
        ...
