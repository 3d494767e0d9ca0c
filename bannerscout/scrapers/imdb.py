"""IMDb scraper: title search and media gallery image discovery."""
import asyncio
import logging
import re
from typing import List, Optional
from urllib.parse import quote_plus, urljoin

import aiohttp
from bs4 import BeautifulSoup

from bannerscout.banners.models import ImageCandidate, SearchResultEntry
from bannerscout.providers.errors import ProviderError

logger = logging.getLogger(__name__)

TITLE_ID_PATTERN = re.compile(r"/title/(tt\d+)")
YEAR_PATTERN = re.compile(r"\b((?:19|20)\d{2})\b")
V1_MARKER = "._V1_"
FULL_SIZE_SUFFIX = "._V1_FMjpg_UX2000_.jpg"
POSTER_SUFFIX = "._V1_UX300_.jpg"


def full_size_url(src: str) -> Optional[str]:
    """Rewrite a thumbnail URL to its 2000px-wide rendition."""
    if not src or V1_MARKER not in src:
        return None
    return src.split(V1_MARKER)[0] + FULL_SIZE_SUFFIX


def _detect_kind(text: str) -> str:
    lowered = text.lower()
    if "video game" in lowered:
        return "other"
    if "tv" in lowered or "series" in lowered:
        return "series"
    return "movie"


def extract_search_results(soup: BeautifulSoup, max_results: int = 10) -> List[SearchResultEntry]:
    """
    Extract title matches from a /find results page.

    Args:
        soup: Parsed search results page
        max_results: Maximum number of entries to extract

    Returns:
        SearchResultEntry list, unique by title id, in page order
    """
    results: List[SearchResultEntry] = []
    seen = set()

    for item in soup.select("li.find-result-item, li.ipc-metadata-list-summary-item"):
        if len(results) >= max_results:
            break

        link = item.select_one('a[href*="/title/tt"]')
        if link is None:
            continue
        match = TITLE_ID_PATTERN.search(link.get("href", ""))
        if not match or match.group(1) in seen:
            continue
        title_id = match.group(1)
        seen.add(title_id)

        title_name = link.get_text(strip=True) or "Unknown"

        # Year and type live in the metadata list, or in "(1999)" on older markup
        meta_text = " ".join(
            node.get_text(" ", strip=True)
            for node in item.select(".ipc-metadata-list-summary-item__li, .result_meta, .result_text")
        )
        year = None
        year_match = re.search(r"\((\d{4})\)", item.get_text(" ")) or YEAR_PATTERN.search(meta_text)
        if year_match:
            year = int(year_match.group(1))

        poster = None
        img = item.find("img")
        if img is not None:
            poster = img.get("src") or img.get("data-src") or None
            if poster and V1_MARKER in poster:
                poster = poster.split(V1_MARKER)[0] + POSTER_SUFFIX

        results.append(SearchResultEntry(
            title_id=title_id,
            title_name=title_name,
            year=year,
            kind=_detect_kind(meta_text),
            poster_address=poster,
        ))

    return results


def extract_candidates(soup: BeautifulSoup, title_id: str) -> List[ImageCandidate]:
    """
    Extract full-size image candidates from a title's media index page.

    Args:
        soup: Parsed media index page
        title_id: IMDb title id (tt...)

    Returns:
        ImageCandidate list without duplicates, in page order
    """
    addresses: List[str] = []

    for img in soup.select('img[src*="media-amazon.com"]'):
        url = full_size_url(img.get("src", ""))
        if url:
            addresses.append(url)

    for link in soup.select(f'a[href*="/title/{title_id}/mediaviewer/"]'):
        img = link.find("img")
        if img is None:
            continue
        url = full_size_url(img.get("src", ""))
        if url:
            addresses.append(url)

    unique = list(dict.fromkeys(addresses))
    return [ImageCandidate(address=address) for address in unique]


class IMDbScraper:
    """Scraper for the IMDb search and media gallery pages."""

    name = "imdb"
    domain = "imdb.com"
    supports_incremental_load = True
    media_scoped_ids = False
    trust_declared_dimensions = False
    verify_batch_size = 3
    filename_suffix = None

    HEADERS = {
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                      "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    }

    def __init__(self, base_url: str = "https://www.imdb.com", timeout: float = 15.0, max_results: int = 10):
        """
        Initialize scraper.

        Args:
            base_url: Site root
            timeout: Timeout in seconds for page requests
            max_results: Maximum number of matches extracted from a search page
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_results = max_results
        self.domain = self.base_url.split("://", 1)[-1].replace("www.", "", 1)

    async def _get_page(self, session: aiohttp.ClientSession, url: str, referer: Optional[str] = None) -> BeautifulSoup:
        headers = dict(self.HEADERS)
        headers["Referer"] = referer or f"{self.base_url}/"
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with session.get(url, headers=headers, timeout=timeout) as response:
                response.raise_for_status()
                html = await response.text()
        except aiohttp.ClientResponseError as e:
            raise ProviderError(self.name, f"HTTP {e.status} for {url}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProviderError(self.name, f"request failed for {url}: {str(e) or type(e).__name__}") from e
        return BeautifulSoup(html, "html.parser")

    async def search(self, session: aiohttp.ClientSession, query: str) -> List[SearchResultEntry]:
        """
        Search titles by name.

        Args:
            session: Open aiohttp session
            query: Title to search for

        Returns:
            List of SearchResultEntry in page order

        Raises:
            ProviderError: if the search page cannot be fetched
        """
        url = f"{self.base_url}/find?q={quote_plus(query)}&s=tt"
        logger.info(f"🔍 Searching IMDb: {url}")
        soup = await self._get_page(session, url)
        results = extract_search_results(soup, self.max_results)
        logger.info(f"Found {len(results)} titles for query: {query}")
        return results

    async def list_images(
        self,
        session: aiohttp.ClientSession,
        title_id: str,
        page: int = 1,
        media_type: Optional[str] = None,
    ) -> List[ImageCandidate]:
        """
        List image candidates from a title's media index.

        Args:
            session: Open aiohttp session
            title_id: IMDb title id
            page: Gallery page, 1-based
            media_type: Unused, IMDb ids are unique across movies and series

        Returns:
            List of ImageCandidate

        Raises:
            ProviderError: if the media page cannot be fetched
        """
        title_url = urljoin(f"{self.base_url}/", f"title/{title_id}/")
        media_url = f"{title_url}mediaindex"
        if page > 1:
            media_url += f"?page={page}"

        logger.info(f"🖼️ Loading media page {page} for {title_id}: {media_url}")
        soup = await self._get_page(session, media_url, referer=title_url)
        candidates = extract_candidates(soup, title_id)
        logger.info(f"Found {len(candidates)} image candidates on page {page} for {title_id}")
        return candidates
