"""Session authentication for the web app."""
import logging
import threading
import time
from functools import wraps
from typing import Callable, Dict, List, Optional

from flask import Blueprint, current_app, jsonify, redirect, request, session
from werkzeug.security import check_password_hash

logger = logging.getLogger(__name__)

LOGIN_PAGE = "/auth/login"

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


class LoginRateLimiter:
    """Tracks failed login attempts per client address within a sliding window."""

    def __init__(self, max_attempts: int = 5, window_seconds: int = 15 * 60,
                 clock: Callable[[], float] = time.monotonic):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._failures: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def _recent(self, client: str, now: float) -> List[float]:
        attempts = [t for t in self._failures.get(client, []) if now - t < self.window_seconds]
        if attempts:
            self._failures[client] = attempts
        else:
            self._failures.pop(client, None)
        return attempts

    def retry_after(self, client: str) -> Optional[int]:
        """Seconds until the client may try again, or None if not blocked."""
        now = self._clock()
        with self._lock:
            attempts = self._recent(client, now)
            if len(attempts) < self.max_attempts:
                return None
            return int(self.window_seconds - (now - attempts[0])) + 1

    def record_failure(self, client: str) -> None:
        now = self._clock()
        with self._lock:
            # Drop clients whose attempts all fell out of the window
            for other in list(self._failures):
                self._recent(other, now)
            self._failures.setdefault(client, []).append(now)

    def reset(self, client: str) -> None:
        with self._lock:
            self._failures.pop(client, None)


def is_authenticated() -> bool:
    """True if the current request carries a logged-in session."""
    return bool(session.get("user"))


def require_session(func: Callable) -> Callable:
    """
    Decorator restricting a route to logged-in users.

    API routes get a 401 JSON response, pages are redirected to the login page.

    Usage:
        @app.route('/api/thing')
        @require_session
        def thing():
            ...
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        if is_authenticated():
            return func(*args, **kwargs)

        if request.path.startswith("/api/"):
            logger.warning(f"Unauthorized API access attempt from {request.remote_addr}: {request.path}")
            return jsonify({
                'success': False,
                'message': 'Authentication required. Please log in.',
                'requiresAuth': True,
            }), 401
        return redirect(LOGIN_PAGE)

    return wrapper


@auth_bp.route("/login", methods=["GET"])
def login_page():
    """Minimal login form."""
    return (
        "<!doctype html><title>Banner Scout - Login</title>"
        "<form method='post' action='/auth/login'>"
        "<input name='username' placeholder='Username'>"
        "<input name='password' type='password' placeholder='Password'>"
        "<button type='submit'>Log in</button></form>"
    )


@auth_bp.route("/login", methods=["POST"])
def login():
    """Check credentials and open a session."""
    settings = current_app.config["SETTINGS"]
    limiter: LoginRateLimiter = current_app.extensions["login_rate_limiter"]
    client = request.remote_addr or "unknown"

    retry_after = limiter.retry_after(client)
    if retry_after is not None:
        logger.warning(f"Login blocked for {client} ({retry_after}s remaining)")
        minutes = max(1, retry_after // 60)
        return jsonify({
            'success': False,
            'message': f'Too many failed attempts. Try again in {minutes} minutes.',
        }), 429

    data = request.get_json(silent=True) or request.form
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""

    if not username or not password:
        return jsonify({'success': False, 'message': 'Username and password are required'}), 400

    if not settings.auth_password_hash:
        logger.error("AUTH_PASSWORD_HASH not configured - login is disabled")
        return jsonify({'success': False, 'message': 'Login is not configured on this server'}), 500

    if username != settings.auth_username or not check_password_hash(settings.auth_password_hash, password):
        limiter.record_failure(client)
        logger.warning(f"Failed login for '{username}' from {client}")
        return jsonify({'success': False, 'message': 'Invalid username or password'}), 401

    limiter.reset(client)
    session.clear()
    session["user"] = username
    session.permanent = True
    logger.info(f"User '{username}' logged in from {client}")
    return jsonify({'success': True, 'user': {'username': username}})


@auth_bp.route("/logout", methods=["POST"])
def logout():
    """Close the session."""
    user = session.get("user")
    session.clear()
    if user:
        logger.info(f"User '{user}' logged out")
    return jsonify({'success': True, 'message': 'Logged out'})


@auth_bp.route("/status", methods=["GET"])
def status():
    """Report whether the caller is logged in."""
    user = session.get("user")
    return jsonify({'success': True, 'authenticated': bool(user), 'user': user})
