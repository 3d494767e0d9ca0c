"""Flask web server exposing banner search and download endpoints."""
import asyncio
import logging
import os
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, Flask, current_app, jsonify, make_response, request

from bannerscout.banners.cache import ResultCache
from bannerscout.banners.models import ImageOutcome
from bannerscout.banners.resolver import BannerResolver, UnknownProviderError
from bannerscout.banners.verifier import ImageVerifier
from bannerscout.config.settings import Settings, settings as default_settings
from bannerscout.metadata.tmdb_client import TMDBClient
from bannerscout.providers.errors import ProviderError
from bannerscout.scrapers.imdb import IMDbScraper
from bannerscout.web.auth import LoginRateLimiter, auth_bp, require_session

logger = logging.getLogger(__name__)

# Application version - update this when making changes
APP_VERSION = "1.0.0"

api_bp = Blueprint("api", __name__)


def build_resolver(settings: Settings, cache: Optional[ResultCache] = None) -> BannerResolver:
    """Wire the cache, providers and verifier from settings."""
    cache = cache or ResultCache(
        ttl_seconds=settings.cache_ttl_seconds,
        check_period_seconds=settings.cache_check_period_seconds,
    )
    providers = {
        'imdb': IMDbScraper(
            base_url=settings.imdb_base_url,
            timeout=settings.provider_timeout_seconds,
            max_results=settings.max_search_results,
        ),
        'tmdb': TMDBClient(
            api_key=settings.tmdb_api_key,
            image_base_url=settings.tmdb_image_base_url,
            poster_base_url=settings.tmdb_poster_base_url,
        ),
    }
    return BannerResolver(
        cache=cache,
        providers=providers,
        verifier=ImageVerifier.from_settings(settings),
        default_provider=settings.get_default_provider(),
        max_search_results=settings.max_search_results,
        batch_pause=settings.batch_pause_seconds,
    )


def get_resolver() -> BannerResolver:
    return current_app.extensions["banner_resolver"]


def run_async(coro):
    """Run a resolver coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


def error_response(message: str, status: int, details: Optional[str] = None) -> Tuple[Any, int]:
    body: Dict[str, Any] = {'success': False, 'error': message}
    if details:
        body['details'] = details
    return jsonify(body), status


def _title_request() -> Tuple[Optional[Dict[str, Any]], Optional[Tuple[Any, int]]]:
    """Read and validate a {movieId, movieTitle, sizeFilter?} request body."""
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return None, error_response('Request body must be a JSON object', 400)
    movie_id = str(data.get('movieId') or '').strip()
    movie_title = str(data.get('movieTitle') or '').strip()
    if not movie_id or not movie_title:
        return None, error_response('Movie ID and title are required', 400)
    return {
        'title_id': movie_id,
        'title_name': movie_title,
        'preset_name': data.get('sizeFilter'),
        'media_type': data.get('mediaType'),
        'source': data.get('source'),
    }, None


def _images_response(outcome: ImageOutcome, source: str, include_cache_flag: bool = True):
    body = {
        'success': True,
        'totalImages': outcome.total_count,
        'images': [image.to_api(index) for index, image in enumerate(outcome.images)],
        'message': outcome.message,
        'source': source,
    }
    if include_cache_flag:
        body['fromCache'] = outcome.from_cache
    return jsonify(body)


def handle_search(source: Optional[str]):
    """Shared handler for the search endpoints."""
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return error_response('Request body must be a JSON object', 400)
    query = str(data.get('query') or '').strip()
    if not query:
        return error_response('Movie title is required', 400)

    source = source or data.get('source')
    resolver = get_resolver()
    try:
        provider = resolver.get_provider(source)
        logger.info(f"🔍 Search request ({provider.name}): {query}")
        outcome = run_async(resolver.resolve_search(query, provider.name))
    except UnknownProviderError as e:
        return error_response(str(e), 400)
    except ProviderError as e:
        logger.error(f"Search failed for '{query}': {e}", exc_info=True)
        return error_response('An error occurred while searching', 500, str(e))
    except Exception as e:
        logger.error(f"Unexpected error searching '{query}': {e}", exc_info=True)
        return error_response('An error occurred while searching', 500, str(e))

    logger.info(f"✅ {len(outcome.results)} results{' (from cache)' if outcome.from_cache else ''}")
    return jsonify({
        'success': True,
        'query': outcome.query,
        'count': len(outcome.results),
        'results': [entry.to_api() for entry in outcome.results],
        'fromCache': outcome.from_cache,
        'source': provider.name,
    })


def handle_download(source: Optional[str]):
    """Shared handler for the download-by-id endpoints."""
    params, error = _title_request()
    if error:
        return error

    resolver = get_resolver()
    try:
        provider = resolver.get_provider(source or params['source'])
        logger.info(f"🎬 Banner request ({provider.name}): {params['title_name']} ({params['title_id']}), "
                    f"size filter: {params['preset_name'] or 'default'}")
        outcome = run_async(resolver.resolve_images(
            params['title_id'], params['title_name'], params['preset_name'],
            provider=provider.name, media_type=params['media_type'],
        ))
    except UnknownProviderError as e:
        return error_response(str(e), 400)
    except ProviderError as e:
        logger.error(f"Banner lookup failed for {params['title_id']}: {e}", exc_info=True)
        return error_response('An error occurred while loading banners', 500, str(e))
    except Exception as e:
        logger.error(f"Unexpected error loading banners for {params['title_id']}: {e}", exc_info=True)
        return error_response('An error occurred while loading banners', 500, str(e))

    logger.info(f"✅ {outcome.total_count} banners{' (from cache)' if outcome.from_cache else ''}")
    return _images_response(outcome, provider.name)


def handle_load_more(source: Optional[str]):
    """Shared handler for the load-more endpoints."""
    params, error = _title_request()
    if error:
        return error

    resolver = get_resolver()
    try:
        provider = resolver.get_provider(source or params['source'])
        logger.info(f"📄 Load more request ({provider.name}): {params['title_name']} ({params['title_id']})")
        outcome = run_async(resolver.load_more(
            params['title_id'], params['title_name'], params['preset_name'],
            provider=provider.name, media_type=params['media_type'],
        ))
    except UnknownProviderError as e:
        return error_response(str(e), 400)
    except ProviderError as e:
        logger.error(f"Load more failed for {params['title_id']}: {e}", exc_info=True)
        return error_response('An error occurred while loading more banners', 500, str(e))
    except Exception as e:
        logger.error(f"Unexpected error loading more banners for {params['title_id']}: {e}", exc_info=True)
        return error_response('An error occurred while loading more banners', 500, str(e))

    return _images_response(outcome, provider.name, include_cache_flag=False)


@api_bp.route('/')
@require_session
def index():
    """Serve the app page."""
    response = make_response(
        f"<!doctype html><title>Banner Scout</title>"
        f"<h1>Banner Scout</h1><p>Version {APP_VERSION}</p>"
    )
    # Prevent caching of HTML to ensure users get latest version
    response.headers['Cache-Control'] = 'no-cache, no-store, must-revalidate'
    return response


@api_bp.route('/health')
def health():
    """Liveness check, no session required."""
    return jsonify({'status': 'ok', 'version': APP_VERSION})


@api_bp.route('/api/health')
@require_session
def api_health():
    return jsonify({'status': 'ok'})


@api_bp.route('/api/search-movies', methods=['POST'])
@require_session
def search_movies():
    """Search titles on the requested (or default) provider."""
    return handle_search(None)


@api_bp.route('/api/download-by-id', methods=['POST'])
@require_session
def download_by_id():
    """Banners for a title, filtered by size preset."""
    return handle_download(None)


@api_bp.route('/api/load-more-images', methods=['POST'])
@require_session
def load_more_images():
    """Banners from the next gallery page of a title."""
    return handle_load_more(None)


@api_bp.route('/api/tmdb-search', methods=['POST'])
@require_session
def tmdb_search():
    return handle_search('tmdb')


@api_bp.route('/api/tmdb-download-by-id', methods=['POST'])
@require_session
def tmdb_download_by_id():
    return handle_download('tmdb')


@api_bp.route('/api/tmdb-load-more', methods=['POST'])
@require_session
def tmdb_load_more():
    return handle_load_more('tmdb')


@api_bp.route('/api/tmdb-popular', methods=['GET'])
@require_session
def tmdb_popular():
    """Weekly trending movies and series from TMDB."""
    try:
        limit = int(request.args.get('limit', 8))
    except ValueError:
        return error_response('limit must be an integer', 400)

    try:
        popular = run_async(get_resolver().popular(limit=max(1, min(limit, 20)), provider='tmdb'))
    except ProviderError as e:
        logger.error(f"TMDB popular fetch error: {e}", exc_info=True)
        return error_response('Could not load popular titles from TMDB', 500, str(e))
    except Exception as e:
        logger.error(f"Unexpected error loading popular titles: {e}", exc_info=True)
        return error_response('Could not load popular titles from TMDB', 500, str(e))

    return jsonify({
        'success': True,
        'movies': [entry.to_api() for entry in popular['movies']],
        'tv': [entry.to_api() for entry in popular['tv']],
    })


@api_bp.route('/api/cache/stats', methods=['GET'])
@require_session
def cache_stats():
    """Cache key count and hit/miss counters."""
    return jsonify({'success': True, 'cache': get_resolver().cache.stats()})


@api_bp.route('/api/cache/clear', methods=['POST'])
@require_session
def cache_clear():
    """Flush the result cache."""
    get_resolver().clear()
    return jsonify({'success': True, 'message': 'Cache cleared'})


def create_app(settings: Optional[Settings] = None, resolver: Optional[BannerResolver] = None,
               start_sweeper: bool = False) -> Flask:
    """
    Create and configure the Flask app.

    Args:
        settings: Application settings, the global instance if None
        resolver: Pre-built resolver (tests inject one with fake providers)
        start_sweeper: Start the cache's background expiry sweep

    Returns:
        Configured Flask app
    """
    settings = settings or default_settings
    app = Flask(__name__)

    app.config['DEBUG'] = False
    app.config['TESTING'] = False
    app.config['SECRET_KEY'] = settings.flask_secret_key
    app.config['SESSION_COOKIE_SECURE'] = settings.session_cookie_secure
    app.config['SESSION_COOKIE_HTTPONLY'] = True
    app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
    app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(hours=settings.session_lifetime_hours)
    app.config['SETTINGS'] = settings

    resolver = resolver or build_resolver(settings)
    app.extensions['banner_resolver'] = resolver
    app.extensions['login_rate_limiter'] = LoginRateLimiter(
        max_attempts=settings.login_max_attempts,
        window_seconds=settings.login_window_seconds,
    )

    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp)

    if start_sweeper:
        resolver.cache.start_sweeper()

    return app


def run_server(host: str = "0.0.0.0", port: int = 3000, debug: bool = False):
    """Run the Flask server."""
    # Ensure debug mode is disabled in production
    is_production = os.getenv('FLASK_ENV', 'production').lower() != 'development'
    debug_mode = debug and not is_production

    app = create_app(start_sweeper=True)
    if is_production:
        logger.info(f"Starting Flask web server in PRODUCTION mode on {host}:{port}")
    else:
        logger.info(f"Starting Flask web server in DEVELOPMENT mode on {host}:{port}")
        app.config['DEBUG'] = debug_mode

    try:
        app.run(host=host, port=port, debug=debug_mode, threaded=True, use_reloader=False)
    except OSError as e:
        if "Address already in use" in str(e) or "Only one usage of each socket address" in str(e):
            logger.error(f"Port {port} is already in use. Please choose a different port or stop the service using it.")
        elif "Permission denied" in str(e):
            logger.error(f"Permission denied to bind to port {port}. Try running as administrator or use a port > 1024.")
        else:
            logger.error(f"Failed to start Flask server: {e}")
        raise
