"""Auth service — resolve Supabase access tokens to local profiles.

Clients authenticate against Supabase directly; this service only checks
the bearer token by asking the Supabase auth API who it belongs to.
"""

import logging

import requests
from flask import current_app

from ridephotos.extensions import db
from ridephotos.models.profile import Profile

logger = logging.getLogger(__name__)


def _get_supabase_config():
    """Return Supabase auth config if available, else None."""
    url = current_app.config.get("SUPABASE_URL")
    key = current_app.config.get("SUPABASE_SERVICE_KEY")
    if url and key:
        return {"url": url.rstrip("/"), "key": key}
    return None


def fetch_auth_user(token):
    """Ask Supabase for the user behind an access token.

    Returns the user JSON (dict with at least "id") or None if the token
    is invalid, expired, or Supabase could not be reached.
    """
    supabase = _get_supabase_config()
    if supabase is None:
        logger.error("Supabase auth is not configured (SUPABASE_URL / SUPABASE_SERVICE_KEY)")
        return None

    headers = {
        "apikey": supabase["key"],
        "Authorization": f"Bearer {token}",
    }
    try:
        resp = requests.get(
            f"{supabase['url']}/auth/v1/user",
            headers=headers,
            timeout=current_app.config.get("SUPABASE_AUTH_TIMEOUT", 5),
        )
    except requests.RequestException as e:
        logger.warning(f"Supabase auth request failed: {e}")
        return None

    if resp.status_code != 200:
        logger.info(f"Supabase rejected access token ({resp.status_code})")
        return None

    data = resp.json()
    if not data.get("id"):
        return None
    return data


def get_user_for_token(token):
    """Return the caller's Profile for a bearer token, or None.

    Users who have no profile row yet get a transient Profile (not added
    to the session) so checkout still works for them.
    """
    auth_user = fetch_auth_user(token)
    if auth_user is None:
        return None

    profile = db.session.get(Profile, auth_user["id"])
    if profile is None:
        profile = Profile(id=auth_user["id"], email=auth_user.get("email"))
    return profile
