from unittest.mock import MagicMock

import pytest
import requests
from tmdbv3api.exceptions import TMDbException

from bannerscout.metadata.tmdb_client import TMDBClient
from bannerscout.providers.errors import ProviderConfigError, ProviderError


@pytest.fixture
def client() -> TMDBClient:
    client = TMDBClient(api_key="test-key")
    client._initialized = True
    client.movie = MagicMock()
    client.tv = MagicMock()
    client.search_api = MagicMock()
    client.trending = MagicMock()
    return client


@pytest.mark.asyncio
async def test_missing_key_fails_on_first_call():
    client = TMDBClient(api_key="")

    with pytest.raises(ProviderConfigError):
        await client.search(None, "Dune")


@pytest.mark.asyncio
async def test_search_keeps_movies_and_series_by_popularity(client):
    client.search_api.multi.return_value = {'results': [
        {'id': 438631, 'media_type': 'movie', 'title': 'Dune', 'release_date': '2021-09-15',
         'poster_path': '/d5.jpg', 'overview': 'Paul Atreides...', 'popularity': 80.5},
        {'id': 1, 'media_type': 'person', 'name': 'Denis Villeneuve', 'popularity': 99},
        {'id': 90228, 'media_type': 'tv', 'name': 'Dune: Prophecy', 'first_air_date': '2024-11-17',
         'poster_path': None, 'popularity': 120.0},
    ]}

    results = await client.search(None, "Dune")

    assert [r.title_id for r in results] == ["90228", "438631"]
    series, movie = results
    assert series.kind == "series"
    assert series.year == 2024
    assert series.poster_address is None
    assert movie.year == 2021
    assert movie.poster_address == "https://image.tmdb.org/t/p/w300/d5.jpg"
    assert movie.to_api()['overview'] == 'Paul Atreides...'


@pytest.mark.asyncio
async def test_list_images_reads_declared_sizes(client):
    client.movie.images.return_value = {'backdrops': [
        {'file_path': '/a.jpg', 'width': 3840, 'height': 2160, 'vote_average': 5.4},
        {'file_path': '/b.jpg', 'width': 1920, 'height': 1080},
        {'file_path': None, 'width': 1920, 'height': 1080},
    ]}

    found = await client.list_images(None, "438631")

    assert [c.address for c in found] == [
        "https://image.tmdb.org/t/p/original/a.jpg",
        "https://image.tmdb.org/t/p/original/b.jpg",
    ]
    assert (found[0].declared_width, found[0].declared_height) == (3840, 2160)
    assert found[0].vote_average == 5.4
    assert found[1].vote_average is None
    client.movie.images.assert_called_once_with("438631")
    client.tv.images.assert_not_called()


@pytest.mark.asyncio
async def test_list_images_for_series(client):
    client.tv.images.return_value = {'backdrops': []}

    assert await client.list_images(None, "90228", media_type="tv") == []
    client.tv.images.assert_called_once_with("90228")


@pytest.mark.asyncio
async def test_list_images_has_no_second_page(client):
    assert await client.list_images(None, "438631", page=2) == []
    client.movie.images.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [TMDbException("Invalid API key"), requests.ConnectionError("down")])
async def test_library_errors_become_provider_errors(client, error):
    client.search_api.multi.side_effect = error

    with pytest.raises(ProviderError) as exc_info:
        await client.search(None, "Dune")

    assert exc_info.value.provider == "tmdb"


@pytest.mark.asyncio
async def test_popular_limits_each_kind(client):
    client.trending.movie_week.return_value = {'results': [
        {'id': i, 'title': f'Movie {i}', 'release_date': '2024-01-01'} for i in range(5)
    ]}
    client.trending.tv_week.return_value = [{'id': 7, 'name': 'Show', 'first_air_date': ''}]

    popular = await client.popular(limit=3)

    assert len(popular['movies']) == 3
    assert popular['movies'][0].year == 2024
    assert popular['tv'][0].kind == "series"
    assert popular['tv'][0].year is None
