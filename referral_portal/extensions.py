"""
Deferred extension instances.

Created here, bound to the app in create_app() via init_app().
"""

from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from referral_portal.services.schema_probe import CustomerSchemaProbe

db = SQLAlchemy()
login_manager = LoginManager()
csrf = CSRFProtect()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # No global limit — we apply per-route
    storage_uri="memory://",
)
schema_probe = CustomerSchemaProbe()


@login_manager.request_loader
def load_user_from_request(request):
    """Build the current user from the identity hub cookie.

    There is no server-side session: every request re-verifies the
    signed token. Imports lazily to avoid circular deps.
    """
    from referral_portal.models.user import PortalUser
    from referral_portal.services.auth_service import get_current_identity

    identity = get_current_identity(request)
    if identity is None:
        return None
    return PortalUser(identity)


@login_manager.unauthorized_handler
def send_to_identity_hub():
    """Anonymous visitors go through the hub and come back to this page."""
    from flask import redirect, request, url_for

    return redirect(url_for("auth.start", return_to=request.full_path.rstrip("?")))
