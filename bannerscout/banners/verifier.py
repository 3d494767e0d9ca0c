"""Confirm that candidate images are fetchable and measure their true size."""
import asyncio
import io
import logging
from typing import Optional, Tuple, Dict

import aiohttp
from PIL import Image, UnidentifiedImageError

from bannerscout.banners import fast_reject
from bannerscout.banners.models import ImageCandidate, SizeRange, VerifiedImage, derive_filename

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                  "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
}


class ImageVerifier:
    """
    Verifies image candidates against a size range.

    Every failure (timeout, refused connection, non-2xx, undecodable header)
    results in None. Nothing is raised to the caller, since many candidates
    are expected to fail when scanning a provider.
    """

    def __init__(
        self,
        probe_timeout: float = 5.0,
        fetch_timeout: float = 10.0,
        min_bytes: int = 50_000,
        max_bytes: int = 10_000_000,
        fast_reject_enabled: bool = True,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize the verifier.

        Args:
            probe_timeout: Timeout in seconds for the HEAD probe
            fetch_timeout: Timeout in seconds for the full download
            min_bytes: Smallest plausible file size
            max_bytes: Largest plausible file size
            fast_reject_enabled: Apply URL size hints before any request
            headers: Request headers, browser-like by default
        """
        self.probe_timeout = probe_timeout
        self.fetch_timeout = fetch_timeout
        self.min_bytes = min_bytes
        self.max_bytes = max_bytes
        self.fast_reject_enabled = fast_reject_enabled
        self.headers = headers or dict(DEFAULT_HEADERS)

    @classmethod
    def from_settings(cls, settings) -> "ImageVerifier":
        """Build a verifier from application settings."""
        return cls(
            probe_timeout=settings.probe_timeout_seconds,
            fetch_timeout=settings.fetch_timeout_seconds,
            min_bytes=settings.min_image_bytes,
            max_bytes=settings.max_image_bytes,
            fast_reject_enabled=settings.fast_reject_enabled,
        )

    async def verify(
        self,
        session: aiohttp.ClientSession,
        candidate: ImageCandidate,
        title_name: str,
        source_domain: str,
        size_range: SizeRange,
        trust_declared: bool = False,
        filename_suffix: Optional[str] = None,
    ) -> Optional[VerifiedImage]:
        """
        Verify a single candidate.

        Args:
            session: Open aiohttp session
            candidate: Image candidate from a provider
            title_name: Title the image belongs to
            source_domain: Domain the image was discovered on
            size_range: Accepted dimensions
            trust_declared: Accept provider-declared dimensions without downloading
            filename_suffix: Optional suffix for the derived filename

        Returns:
            VerifiedImage if accepted, None otherwise
        """
        url = candidate.address

        if trust_declared and candidate.has_declared_size:
            width, height = candidate.declared_width, candidate.declared_height
            if not size_range.contains(width, height):
                return None
            return self._build(candidate, width, height, title_name, source_domain,
                               candidate.content_kind, filename_suffix)

        if not fast_reject.might_match(url, size_range, enabled=self.fast_reject_enabled):
            logger.debug(f"⏭️ Skipped by URL size hint: {url}")
            return None

        skip, content_type = await self._probe(session, url)
        if skip:
            logger.debug(f"⏭️ Skipped (file size out of range): {url}")
            return None

        data = await self._fetch(session, url)
        if data is None:
            return None
        if not self.min_bytes <= len(data) <= self.max_bytes:
            logger.debug(f"⏭️ Skipped (downloaded {len(data)} bytes, outside byte range): {url}")
            return None

        info = self.read_image(data)
        if info is None:
            logger.debug(f"⚠️ Could not decode image header: {url}")
            return None

        width, height, decoded_kind = info
        if not size_range.contains(width, height):
            logger.debug(f"❌ {width}x{height} outside {size_range}: {url}")
            return None

        logger.debug(f"✅ Accepted {width}x{height}: {url}")
        return self._build(candidate, width, height, title_name, source_domain,
                           decoded_kind or content_type or candidate.content_kind, filename_suffix)

    async def _probe(self, session: aiohttp.ClientSession, url: str) -> Tuple[bool, Optional[str]]:
        """
        HEAD the image and check its byte size.

        Returns:
            (skip, content_type). A failed probe never asks to skip.
        """
        try:
            timeout = aiohttp.ClientTimeout(total=self.probe_timeout)
            async with session.head(url, headers=self.headers, timeout=timeout,
                                    allow_redirects=True) as response:
                content_type = response.headers.get("Content-Type")
                content_length = response.headers.get("Content-Length")
                if response.status >= 400 or content_length is None:
                    return False, content_type
                size = int(content_length)
                if size < self.min_bytes or size > self.max_bytes:
                    return True, content_type
                return False, content_type
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.debug(f"HEAD probe failed for {url}: {e}")
            return False, None

    async def _fetch(self, session: aiohttp.ClientSession, url: str) -> Optional[bytes]:
        """
        Download the image body, or None on any failure.

        Reading stops as soon as the body exceeds max_bytes.
        """
        try:
            timeout = aiohttp.ClientTimeout(total=self.fetch_timeout)
            async with session.get(url, headers=self.headers, timeout=timeout) as response:
                response.raise_for_status()
                content_length = response.headers.get("Content-Length")
                if content_length is not None and content_length.isdigit() \
                        and int(content_length) > self.max_bytes:
                    logger.debug(f"⏭️ Skipped ({content_length} bytes declared): {url}")
                    return None

                body = bytearray()
                async for chunk in response.content.iter_chunked(64 * 1024):
                    body.extend(chunk)
                    if len(body) > self.max_bytes:
                        logger.debug(f"⏭️ Stopped download past {self.max_bytes} bytes: {url}")
                        return None
                return bytes(body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"⚠️ Could not fetch {url}: {e}")
            return None

    @staticmethod
    def read_image(data: bytes) -> Optional[Tuple[int, int, Optional[str]]]:
        """
        Read width, height and MIME type from the image header.

        Pixels are not decoded.

        Returns:
            (width, height, mime) or None if the data is not an image
        """
        try:
            with Image.open(io.BytesIO(data)) as image:
                width, height = image.size
                return width, height, Image.MIME.get(image.format or "")
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
            return None

    @staticmethod
    def _build(candidate: ImageCandidate, width: int, height: int, title_name: str,
               source_domain: str, content_kind: Optional[str],
               filename_suffix: Optional[str]) -> VerifiedImage:
        content_kind = (content_kind or "image/jpeg").split(";")[0].strip().lower()
        return VerifiedImage(
            address=candidate.address,
            width=width,
            height=height,
            title_name=title_name,
            source_domain=source_domain,
            content_kind=content_kind,
            derived_filename=derive_filename(title_name, width, height, filename_suffix, content_kind),
        )
