"""Banner, candidate and search result data models."""
import re
from typing import Optional, List, Dict, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SizeRange(BaseModel):
    """Accept/reject rectangle for image dimensions (inclusive bounds)."""
    model_config = ConfigDict(frozen=True)

    min_width: int = Field(..., ge=0)
    max_width: int = Field(..., ge=0)
    min_height: int = Field(..., ge=0)
    max_height: int = Field(..., ge=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "SizeRange":
        if self.min_width > self.max_width or self.min_height > self.max_height:
            raise ValueError("min must not exceed max on either axis")
        return self

    def contains(self, width: int, height: int) -> bool:
        """Return True if width x height lies within the range on both axes."""
        return (self.min_width <= width <= self.max_width
                and self.min_height <= height <= self.max_height)

    def __str__(self) -> str:
        return f"{self.min_width}-{self.max_width}px x {self.min_height}-{self.max_height}px"


class ImageCandidate(BaseModel):
    """An image address produced by a provider, with any dimensions it declares."""
    address: str = Field(..., description="Image URL")
    declared_width: Optional[int] = Field(None, description="Width reported by the provider's metadata")
    declared_height: Optional[int] = Field(None, description="Height reported by the provider's metadata")
    content_kind: Optional[str] = Field(None, description="MIME type if known")
    vote_average: Optional[float] = Field(None, description="Provider rating of the image, if any")

    @property
    def has_declared_size(self) -> bool:
        return self.declared_width is not None and self.declared_height is not None


EXTENSIONS = {
    'image/jpeg': 'jpg',
    'image/png': 'png',
    'image/webp': 'webp',
    'image/gif': 'gif',
    'image/avif': 'avif',
}


def derive_filename(title_name: str, width: int, height: int, suffix: Optional[str] = None,
                    content_kind: Optional[str] = None) -> str:
    """Build the display filename for a banner, e.g. 'The_Matrix_1920x1080.jpg'."""
    base = re.sub(r"\s+", "_", title_name.strip())
    extension = EXTENSIONS.get(content_kind or "", "jpg")
    if suffix:
        return f"{base}_{width}x{height}_{suffix}.{extension}"
    return f"{base}_{width}x{height}.{extension}"


class VerifiedImage(BaseModel):
    """An image whose fetchability and true pixel size have been confirmed."""
    model_config = ConfigDict(frozen=True)

    address: str
    width: int
    height: int
    title_name: str
    source_domain: str
    content_kind: str = "image/jpeg"
    derived_filename: str

    def to_api(self, index: int) -> Dict[str, Any]:
        """Serialize for the JSON API."""
        return {
            'id': index,
            'name': self.derived_filename,
            'url': self.address,
            'width': self.width,
            'height': self.height,
            'movie': self.title_name,
            'domain': self.source_domain,
        }

    def __str__(self) -> str:
        return f"{self.derived_filename} ({self.width}x{self.height}, {self.source_domain})"


KIND_LABELS = {
    'movie': 'Movie',
    'series': 'TV Series',
    'other': 'Other',
}


class SearchResultEntry(BaseModel):
    """One title match returned for a search query."""
    title_id: str = Field(..., description="Provider-native title identifier")
    title_name: str = Field(..., description="Display title")
    year: Optional[int] = Field(None, description="Release or first-air year")
    kind: Literal['movie', 'series', 'other'] = Field("movie", description="movie, series or other")
    poster_address: Optional[str] = Field(None, description="Poster thumbnail URL")
    overview: Optional[str] = Field(None, description="Plot summary (structured provider only)")
    popularity: Optional[float] = Field(None, description="Provider popularity score")

    def to_api(self) -> Dict[str, Any]:
        """Serialize for the JSON API."""
        return {
            'movieId': self.title_id,
            'movieTitle': self.title_name,
            'year': str(self.year) if self.year else '',
            'type': KIND_LABELS.get(self.kind, 'Other'),
            'poster': self.poster_address or '',
            'overview': self.overview or '',
            'mediaType': 'tv' if self.kind == 'series' else 'movie',
        }


class SearchOutcome(BaseModel):
    """Result of a search resolution."""
    query: str
    results: List[SearchResultEntry] = Field(default_factory=list)
    from_cache: bool = False


class ImageOutcome(BaseModel):
    """Result of an image resolution or load-more call."""
    images: List[VerifiedImage] = Field(default_factory=list)
    from_cache: bool = False
    message: Optional[str] = None

    @property
    def total_count(self) -> int:
        return len(self.images)
