"""
Deferred extension instances.

Created here, bound to the app in create_app() via init_app().
"""

from flask import jsonify
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

from ridephotos.services.stripe_gateway import StripeGateway

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
stripe_gateway = StripeGateway()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # No global limit — we apply per-route
    storage_uri="memory://",
)


@login_manager.request_loader
def load_user_from_request(request):
    """Resolve the caller from a Supabase access token.

    The mobile and web clients send ``Authorization: Bearer <jwt>``.
    Imports lazily to avoid circular deps.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[len("Bearer "):].strip()
    if not token:
        return None

    from ridephotos.services.auth_service import get_user_for_token

    return get_user_for_token(token)


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Unauthorized"}), 401
