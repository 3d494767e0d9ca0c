"""Banner resolution: cache lookup, provider discovery, batched verification."""
import asyncio
import logging
import threading
from collections import OrderedDict
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import aiohttp

from bannerscout.banners import size_policy
from bannerscout.banners.cache import ResultCache, title_key
from bannerscout.banners.models import (
    ImageCandidate,
    ImageOutcome,
    SearchOutcome,
    SearchResultEntry,
    VerifiedImage,
)
from bannerscout.banners.verifier import ImageVerifier
from bannerscout.providers.base import ProviderAdapter

logger = logging.getLogger(__name__)

# Titles whose load-more page position is remembered
MAX_TRACKED_TITLES = 1000


class UnknownProviderError(ValueError):
    """Raised when a request names a provider that is not registered."""


def dedupe_results(results: Iterable[SearchResultEntry]) -> List[SearchResultEntry]:
    """Keep the first entry per title id."""
    seen = set()
    unique = []
    for entry in results:
        if entry.title_id in seen:
            continue
        seen.add(entry.title_id)
        unique.append(entry)
    return unique


def rank_results(results: Sequence[SearchResultEntry], query: str) -> List[SearchResultEntry]:
    """
    Order search results: exact title matches first, then newest first.

    The sort is stable, so provider order survives among ties. Entries
    without a year follow the dated ones of the same match class.
    """
    wanted = query.strip().casefold()

    def sort_key(entry: SearchResultEntry):
        exact = entry.title_name.strip().casefold() == wanted
        return (0 if exact else 1, 0 if entry.year else 1, -(entry.year or 0))

    return sorted(results, key=sort_key)


class BannerResolver:
    """
    Serves search and banner requests from cache or from a provider.

    Image sets are cached unfiltered. The size preset is applied on every
    read, so the same cached set serves every preset.
    """

    def __init__(
        self,
        cache: ResultCache,
        providers: Dict[str, ProviderAdapter],
        verifier: ImageVerifier,
        default_provider: str = "imdb",
        max_search_results: int = 10,
        batch_pause: float = 0.2,
        session_factory: Callable[[], aiohttp.ClientSession] = aiohttp.ClientSession,
    ):
        """
        Initialize the resolver.

        Args:
            cache: Shared result cache
            providers: Provider adapters by name
            verifier: Image verifier
            default_provider: Provider used when a request names none
            max_search_results: Maximum number of search matches returned
            batch_pause: Seconds to wait between verification batches
            session_factory: Creates the aiohttp session for one resolution
        """
        self.cache = cache
        self.providers = providers
        self.verifier = verifier
        self.default_provider = default_provider
        self.max_search_results = max_search_results
        self.batch_pause = batch_pause
        self._session_factory = session_factory
        self._next_pages: "OrderedDict[str, int]" = OrderedDict()
        self._pages_lock = threading.Lock()

    def get_provider(self, name: Optional[str] = None) -> ProviderAdapter:
        """Return the named provider, or the default one."""
        if name is not None and not isinstance(name, str):
            raise UnknownProviderError(f"Invalid source {name!r}. Available: {', '.join(sorted(self.providers))}")
        key = (name or self.default_provider).strip().lower()
        provider = self.providers.get(key)
        if provider is None:
            raise UnknownProviderError(f"Unknown source '{name}'. Available: {', '.join(sorted(self.providers))}")
        return provider

    def _title_key(self, provider: ProviderAdapter, title_id: str, media_type: Optional[str]) -> str:
        if not provider.media_scoped_ids:
            return title_key(provider.name, title_id)
        return title_key(provider.name, title_id, media_type or "movie")

    async def resolve_search(self, query: str, provider: Optional[str] = None) -> SearchOutcome:
        """
        Resolve a title search.

        Args:
            query: Title to search for (validated, non-empty)
            provider: Provider name, default if None

        Returns:
            SearchOutcome with ranked, truncated results

        Raises:
            ProviderError: if the provider call fails
        """
        adapter = self.get_provider(provider)

        cached = self.cache.get_search(adapter.name, query)
        if cached is not None:
            return SearchOutcome(query=query, results=list(cached), from_cache=True)

        async with self._session_factory() as session:
            results = await adapter.search(session, query)

        ranked = rank_results(dedupe_results(results), query)[:self.max_search_results]
        self.cache.put_search(adapter.name, query, ranked)
        return SearchOutcome(query=query, results=ranked, from_cache=False)

    async def resolve_images(
        self,
        title_id: str,
        title_name: str,
        preset_name: Optional[str] = None,
        provider: Optional[str] = None,
        media_type: Optional[str] = None,
    ) -> ImageOutcome:
        """
        Resolve banners for a title, filtered by a size preset.

        On a cache hit the cached raw set is filtered and returned without
        any network call. On a miss, candidates are discovered, verified in
        batches, cached unfiltered (if any were accepted) and filtered.

        Args:
            title_id: Provider-native title id
            title_name: Display title, used for filenames
            preset_name: Size preset name
            provider: Provider name, default if None
            media_type: 'movie' or 'tv' for providers with media-scoped ids

        Returns:
            ImageOutcome

        Raises:
            ProviderError: if candidate discovery fails
        """
        adapter = self.get_provider(provider)
        size_range = size_policy.resolve(preset_name)
        key = self._title_key(adapter, title_id, media_type)
        logger.info(f"🎬 Resolving banners for '{title_name}' ({key}), size filter {size_range}")

        cached = self.cache.get_image_set(key)
        if cached is not None:
            images = size_policy.filter_images(cached, size_range)
            return ImageOutcome(images=images, from_cache=True,
                                message=f"{len(images)} banners found (from cache)")

        async with self._session_factory() as session:
            candidates = await adapter.list_images(session, title_id, page=1, media_type=media_type)
            raw = await self._verify_all(session, adapter, candidates, title_name)

        with self._pages_lock:
            self._next_pages.pop(key, None)

        if raw:
            self.cache.put_image_set(key, raw)
        else:
            logger.info(f"⚠️ No banners accepted for '{title_name}' ({len(candidates)} candidates)")

        images = size_policy.filter_images(raw, size_range)
        logger.info(f"🎉 {len(images)} of {len(raw)} verified banners match {size_range}")
        return ImageOutcome(images=images, from_cache=False, message=self._found_message(images, candidates))

    async def load_more(
        self,
        title_id: str,
        title_name: str,
        preset_name: Optional[str] = None,
        provider: Optional[str] = None,
        media_type: Optional[str] = None,
    ) -> ImageOutcome:
        """
        Discover banners from the next gallery page of a title.

        Only newly found images are returned. They are merged into the
        cached raw set, which therefore only grows.

        Args:
            title_id: Provider-native title id
            title_name: Display title
            preset_name: Size preset name
            provider: Provider name, default if None
            media_type: 'movie' or 'tv' for providers with media-scoped ids

        Returns:
            ImageOutcome, empty with a message for providers that return
            everything in one request
        """
        adapter = self.get_provider(provider)
        if not adapter.supports_incremental_load:
            logger.info(f"{adapter.name} returns all images at once; nothing more to load for {title_id}")
            return ImageOutcome(images=[], message=f"{adapter.name.upper()} returns all images in the first request")

        size_range = size_policy.resolve(preset_name)
        key = self._title_key(adapter, title_id, media_type)
        with self._pages_lock:
            page = self._next_pages.get(key, 2)

        logger.info(f"📄 Loading page {page} for '{title_name}' ({key})")
        async with self._session_factory() as session:
            candidates = await adapter.list_images(session, title_id, page=page, media_type=media_type)
            existing = self.cache.get_image_set(key) or ()
            known = {image.address for image in existing}
            fresh = [candidate for candidate in candidates if candidate.address not in known]
            new_raw = await self._verify_all(session, adapter, fresh, title_name)

        if candidates:
            with self._pages_lock:
                self._next_pages[key] = page + 1
                self._next_pages.move_to_end(key)
                while len(self._next_pages) > MAX_TRACKED_TITLES:
                    self._next_pages.popitem(last=False)

        # Without the earlier set in cache, storing only this page would shrink later results
        if new_raw and existing:
            self.cache.put_image_set(key, tuple(existing) + tuple(new_raw))

        images = size_policy.filter_images(new_raw, size_range)
        if images:
            message = f"✨ {len(images)} new banners found"
        else:
            message = "ℹ️ No new banners found"
        return ImageOutcome(images=images, from_cache=False, message=message)

    def clear(self) -> None:
        """Flush the cache and forget load-more positions."""
        self.cache.flush_all()
        with self._pages_lock:
            self._next_pages.clear()

    async def popular(self, limit: int = 8, provider: Optional[str] = None) -> Dict[str, List[SearchResultEntry]]:
        """Trending titles from a provider that offers them."""
        adapter = self.get_provider(provider)
        fetch_popular = getattr(adapter, "popular", None)
        if fetch_popular is None:
            raise UnknownProviderError(f"Source '{adapter.name}' has no popular titles")
        return await fetch_popular(limit)

    async def _verify_all(
        self,
        session: aiohttp.ClientSession,
        adapter: ProviderAdapter,
        candidates: Sequence[ImageCandidate],
        title_name: str,
    ) -> List[VerifiedImage]:
        """
        Verify candidates in sequential batches of adapter.verify_batch_size.

        Members of a batch run concurrently and fail independently.
        """
        batch_size = max(1, adapter.verify_batch_size)
        accepted: Dict[str, VerifiedImage] = {}

        for start in range(0, len(candidates), batch_size):
            batch = candidates[start:start + batch_size]
            results = await asyncio.gather(
                *(self.verifier.verify(
                    session,
                    candidate,
                    title_name,
                    adapter.domain,
                    size_policy.PLAUSIBLE_RANGE,
                    trust_declared=adapter.trust_declared_dimensions,
                    filename_suffix=adapter.filename_suffix,
                ) for candidate in batch),
                return_exceptions=True,
            )
            for candidate, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.debug(f"⚠️ Verification error for {candidate.address}: {result}")
                elif result is not None:
                    accepted.setdefault(result.address, result)

            if start + batch_size < len(candidates) and self.batch_pause > 0:
                await asyncio.sleep(self.batch_pause)

        return list(accepted.values())

    @staticmethod
    def _found_message(images: Sequence[VerifiedImage], candidates: Sequence[ImageCandidate]) -> str:
        if images:
            return f"{len(images)} banners found"
        if not candidates:
            return "No images found for this title"
        return "No banners matched the selected size"
