"""TMDB API client for title search and backdrop images."""
import asyncio
import logging
from typing import Optional, Dict, Any, List

import aiohttp
import requests
from tmdbv3api import TMDb, Movie, TV, Search, Trending
from tmdbv3api.exceptions import TMDbException

from bannerscout.banners.models import ImageCandidate, SearchResultEntry
from bannerscout.providers.errors import ProviderConfigError, ProviderError

logger = logging.getLogger(__name__)


def _year_from_date(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(str(value).split('-')[0])
    except (ValueError, AttributeError):
        return None


class TMDBClient:
    """
    Client for The Movie Database (TMDB).

    tmdbv3api is synchronous, so every call runs in a worker thread to keep
    the event loop free. Backdrops come with their true dimensions, so the
    verifier trusts them instead of downloading.
    """

    name = "tmdb"
    domain = "tmdb.org"
    supports_incremental_load = False
    media_scoped_ids = True
    trust_declared_dimensions = True
    verify_batch_size = 15
    filename_suffix = "tmdb"

    def __init__(
        self,
        api_key: Optional[str] = None,
        image_base_url: str = "https://image.tmdb.org/t/p/original",
        poster_base_url: str = "https://image.tmdb.org/t/p/w300",
    ):
        """
        Initialize TMDB client.

        A missing key is not an error here; the first call raises
        ProviderConfigError so the rest of the app keeps working.

        Args:
            api_key: TMDB API key (v3)
            image_base_url: Prefix for full-size image paths
            poster_base_url: Prefix for poster thumbnails
        """
        self.api_key = api_key or ""
        self.image_base_url = image_base_url.rstrip('/')
        self.poster_base_url = poster_base_url.rstrip('/')
        self._initialized = False

        if not self.api_key:
            logger.warning("TMDB API key not configured. TMDB requests will fail until TMDB_API_KEY is set.")

    def _ensure_configured(self) -> None:
        if not self.api_key:
            raise ProviderConfigError(self.name, "TMDB_API_KEY is not configured")
        if not self._initialized:
            self.tmdb = TMDb()
            self.tmdb.api_key = self.api_key
            self.tmdb.language = 'en-US'
            self.movie = Movie()
            self.tv = TV()
            self.search_api = Search()
            self.trending = Trending()
            self._initialized = True
            logger.info("TMDB client initialized")

    async def _call(self, description: str, func, *args, **kwargs) -> Any:
        """Run a blocking tmdbv3api call in a thread, mapping failures to ProviderError."""
        self._ensure_configured()
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except TMDbException as e:
            raise ProviderError(self.name, f"{description} failed: {e}") from e
        except requests.RequestException as e:
            raise ProviderError(self.name, f"{description} request failed: {e}") from e

    async def search(self, session: aiohttp.ClientSession, query: str) -> List[SearchResultEntry]:
        """
        Search movies and TV series (multi search).

        Args:
            session: Unused; present for the provider interface
            query: Title to search for

        Returns:
            Movies and series ordered by popularity

        Raises:
            ProviderConfigError: if no API key is configured
            ProviderError: if the API call fails
        """
        logger.info(f"🔍 TMDB - searching '{query}'")
        self._ensure_configured()
        response = await self._call("search", self.search_api.multi, query)

        entries = []
        for item in self._results(response):
            media_type = item.get('media_type')
            if media_type not in ('movie', 'tv'):
                continue
            is_movie = media_type == 'movie'
            poster_path = item.get('poster_path')
            entries.append(SearchResultEntry(
                title_id=str(item.get('id')),
                title_name=(item.get('title') if is_movie else item.get('name')) or 'Unknown',
                year=_year_from_date(item.get('release_date') if is_movie else item.get('first_air_date')),
                kind='movie' if is_movie else 'series',
                poster_address=f"{self.poster_base_url}{poster_path}" if poster_path else None,
                overview=item.get('overview') or None,
                popularity=float(item.get('popularity') or 0),
            ))

        entries.sort(key=lambda entry: entry.popularity or 0, reverse=True)
        logger.info(f"✅ TMDB - {len(entries)} results for '{query}'")
        return entries

    async def list_images(
        self,
        session: aiohttp.ClientSession,
        title_id: str,
        page: int = 1,
        media_type: Optional[str] = None,
    ) -> List[ImageCandidate]:
        """
        List all backdrops of a movie or series with their declared sizes.

        TMDB returns every image in one response; pages beyond the first
        are empty.

        Args:
            session: Unused; present for the provider interface
            title_id: TMDB id
            page: Only page 1 has content
            media_type: 'movie' (default) or 'tv'

        Returns:
            List of ImageCandidate with declared width/height
        """
        if page > 1:
            return []

        is_tv = media_type == 'tv'
        logger.info(f"🎬 TMDB - loading {'tv' if is_tv else 'movie'} images for {title_id}")
        self._ensure_configured()
        api = self.tv if is_tv else self.movie
        response = await self._call("images", api.images, title_id)

        backdrops = self._to_dict(response).get('backdrops') or []
        candidates = []
        for backdrop in backdrops:
            item = self._to_dict(backdrop)
            file_path = item.get('file_path')
            width, height = item.get('width'), item.get('height')
            if not file_path or not width or not height:
                continue
            candidates.append(ImageCandidate(
                address=f"{self.image_base_url}{file_path}",
                declared_width=int(width),
                declared_height=int(height),
                content_kind='image/jpeg',
                vote_average=item.get('vote_average'),
            ))

        logger.info(f"✅ TMDB - {len(candidates)} backdrops for {title_id}")
        return candidates

    async def popular(self, limit: int = 8) -> Dict[str, List[SearchResultEntry]]:
        """
        Weekly trending movies and series.

        Args:
            limit: Maximum entries per kind

        Returns:
            {'movies': [...], 'tv': [...]}
        """
        self._ensure_configured()
        movies = await self._call("trending movies", self.trending.movie_week)
        shows = await self._call("trending tv", self.trending.tv_week)
        return {
            'movies': self._trending_entries(movies, 'movie', limit),
            'tv': self._trending_entries(shows, 'series', limit),
        }

    def _trending_entries(self, response: Any, kind: str, limit: int) -> List[SearchResultEntry]:
        entries = []
        for item in self._results(response)[:limit]:
            poster_path = item.get('poster_path')
            entries.append(SearchResultEntry(
                title_id=str(item.get('id')),
                title_name=item.get('title') or item.get('name') or '',
                year=_year_from_date(item.get('release_date') or item.get('first_air_date')),
                kind=kind,
                poster_address=f"{self.poster_base_url}{poster_path}" if poster_path else None,
                overview=item.get('overview') or None,
                popularity=float(item.get('popularity') or 0),
            ))
        return entries

    def _results(self, response: Any) -> List[Dict[str, Any]]:
        """Normalize a tmdbv3api list response (list, dict or AsObj) into a list of dicts."""
        if response is None:
            return []
        if isinstance(response, list):
            results = response
        elif isinstance(response, dict):
            results = response.get('results', [])
        elif hasattr(response, 'results'):
            results = getattr(response, 'results', [])
        else:
            results = list(response) if hasattr(response, '__iter__') else []
        return [self._to_dict(item) for item in results or []]

    def _to_dict(self, obj: Any) -> Dict[str, Any]:
        """
        Convert a TMDB object to a dictionary.

        Args:
            obj: dict, AsObj or object with attributes

        Returns:
            Dictionary representation (empty for strings and None)
        """
        if obj is None or isinstance(obj, str):
            return {}
        if isinstance(obj, dict):
            return {str(k): v for k, v in obj.items()}
        if hasattr(obj, '_json') and isinstance(getattr(obj, '_json'), dict):
            return dict(obj._json)
        if hasattr(obj, '__dict__'):
            return {str(k): v for k, v in obj.__dict__.items() if not k.startswith('_')}
        return {}
