"""Auth blueprint — /auth/*

Sign-in happens on the external identity hub. These routes only bounce the
browser there and back:
- /auth/start  sends the visitor to the hub with a safe return_to URL
- /auth/logout clears the hub cookie and signs out on the hub too
"""

from urllib.parse import urlencode, urljoin, urlsplit

from flask import Blueprint, current_app, redirect, request

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

DEFAULT_RETURN_PATH = "/dashboard"


def _origin(url):
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def get_app_base_url():
    """APP_BASE_URL when configured, otherwise the origin of this request."""
    configured = current_app.config.get("APP_BASE_URL")
    if configured:
        return _origin(configured)
    return request.host_url.rstrip("/")


def safe_return_to(raw, base_url):
    """Resolve `raw` against the portal and refuse other origins.

    Anything malformed or pointing off-site falls back to the dashboard.
    """
    fallback = urljoin(base_url + "/", DEFAULT_RETURN_PATH.lstrip("/"))
    try:
        resolved = urljoin(base_url + "/", raw or DEFAULT_RETURN_PATH)
        parts = urlsplit(resolved)
    except ValueError:
        return fallback
    if parts.scheme not in ("http", "https") or _origin(resolved) != base_url:
        return fallback
    return resolved


def _hub_url(path, return_to):
    hub = current_app.config["AUTH_HUB_URL"]
    return f"{urljoin(hub, path)}?{urlencode({'return_to': return_to})}"


# ──────────────────────────────────────────────
# GET /auth/start?return_to=/dashboard
# ──────────────────────────────────────────────

@auth_bp.route("/start")
def start():
    """Redirect to the identity hub login, asking it to come back here."""
    base_url = get_app_base_url()
    return_to = safe_return_to(request.args.get("return_to"), base_url)
    return redirect(_hub_url("/", return_to))


# ──────────────────────────────────────────────
# GET /auth/logout
# ──────────────────────────────────────────────

@auth_bp.route("/logout")
def logout():
    """Drop the hub cookie and sign out on the hub, then land on home."""
    home = get_app_base_url() + "/"
    response = redirect(_hub_url("/auth/logout", home))
    response.delete_cookie(current_app.config.get("AUTH_COOKIE_NAME", "auth_token"))
    return response
