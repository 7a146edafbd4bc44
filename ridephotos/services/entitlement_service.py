"""Entitlement service — store helpers for photo unlocks and leaderboard rows.

Responsible for:
- Resolving a photo's ride speed (recorded value, else file-name heuristic)
- Computing day-pass windows and loading the photos inside them
- Idempotent unlock grants (INSERT ... ON CONFLICT DO NOTHING)
- Leaderboard upserts (INSERT ... ON CONFLICT DO UPDATE, later write wins)

Conflict handling lives in the database (unique constraints on
user_id + photo_id), so concurrent duplicate webhooks cannot create
duplicate rows.
"""

import logging
import math
import re
import uuid
from datetime import datetime, time, timedelta, timezone

from sqlalchemy.dialects import postgresql, sqlite

from ridephotos.extensions import db
from ridephotos.models.entitlement import LeaderboardEntry, UnlockedPhoto
from ridephotos.models.photo import Photo

logger = logging.getLogger(__name__)

_EXTENSION = re.compile(r"\.[^.]+$")
_NON_DIGITS = re.compile(r"\D")


def _upsert(model):
    """Dialect-specific INSERT supporting ON CONFLICT clauses."""
    dialect = db.engine.dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise RuntimeError(f"Upserts not supported on {dialect}")


# ──────────────────────────────────────────────
# Speed & dates
# ──────────────────────────────────────────────

def speed_from_storage_path(storage_path):
    """Derive km/h from the camera file name.

    Cameras encode the measured speed as the last four digits of the
    file name with two implied decimals: ``.../ride_0000_4210.jpg`` is
    42.10 km/h. Returns None when fewer than four digits are present.
    """
    if not storage_path:
        return None
    file_name = storage_path.rsplit("/", 1)[-1]
    digits = _NON_DIGITS.sub("", _EXTENSION.sub("", file_name))
    if len(digits) < 4:
        return None
    return int(digits[-4:]) / 100


def resolve_speed_kmh(photo):
    """Recorded speed if positive and finite, else the storage-path value."""
    recorded = photo.speed_kmh
    if recorded is not None and math.isfinite(recorded) and recorded > 0:
        return float(recorded)
    return speed_from_storage_path(photo.storage_path)


def ride_date(photo):
    """Calendar date (UTC) the photo was captured."""
    captured_at = photo.captured_at
    if captured_at.tzinfo is not None:
        captured_at = captured_at.astimezone(timezone.utc)
    return captured_at.date()


def day_window(day):
    """Return the [start, end) UTC datetimes covering ``day``."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def photos_in_window(park_id, start, end):
    """Photos of a park captured in [start, end), oldest first, unique by id."""
    photos = (
        Photo.query
        .filter(
            Photo.park_id == park_id,
            Photo.captured_at >= start,
            Photo.captured_at < end,
        )
        .order_by(Photo.captured_at.asc())
        .all()
    )
    unique = {}
    for photo in photos:
        unique.setdefault(photo.id, photo)
    return list(unique.values())


# ──────────────────────────────────────────────
# Unlocks
# ──────────────────────────────────────────────

def grant_photo_unlock(user_id, photo_id, park_id, unlocked_at=None):
    """Unlock one photo for a user. Re-granting is a no-op.

    Returns True if a new row was written.
    """
    return grant_photo_unlocks(user_id, [(photo_id, park_id)], unlocked_at=unlocked_at) > 0


def grant_photo_unlocks(user_id, grants, unlocked_at=None):
    """Bulk-unlock photos for a user, ignoring ones already unlocked.

    ``grants`` is an iterable of (photo_id, park_id) pairs.
    ``unlocked_at`` defaults to now.
    Returns the number of newly written rows.
    """
    now = unlocked_at or datetime.now(timezone.utc)
    rows = [
        {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "photo_id": photo_id,
            "park_id": park_id,
            "unlocked_at": now,
        }
        for photo_id, park_id in grants
    ]
    if not rows:
        return 0

    stmt = _upsert(UnlockedPhoto).values(rows).on_conflict_do_nothing(
        index_elements=["user_id", "photo_id"]
    )
    result = db.session.execute(stmt)
    return max(result.rowcount, 0)


# ──────────────────────────────────────────────
# Leaderboard
# ──────────────────────────────────────────────

def _leaderboard_row(user_id, photo, park_id):
    speed = resolve_speed_kmh(photo)
    if speed is None:
        logger.info(f"No speed for photo {photo.id}, skipping leaderboard entry")
        return None
    return {
        "id": str(uuid.uuid4()),
        "user_id": user_id,
        "photo_id": photo.id,
        "speed_kmh": round(speed, 2),
        "ride_date": ride_date(photo),
        "park_id": photo.park_id or park_id,
    }


def upsert_leaderboard_entries(user_id, photos, park_id):
    """Upsert leaderboard rows for photos; existing rows take the new values.

    Photos without a resolvable speed are skipped.
    Returns the number of rows written.
    """
    rows = [
        row for row in (_leaderboard_row(user_id, photo, park_id) for photo in photos)
        if row is not None
    ]
    if not rows:
        return 0

    stmt = _upsert(LeaderboardEntry).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "photo_id"],
        set_={
            "speed_kmh": stmt.excluded.speed_kmh,
            "ride_date": stmt.excluded.ride_date,
            "park_id": stmt.excluded.park_id,
        },
    )
    db.session.execute(stmt)
    return len(rows)


def upsert_leaderboard_entry(user_id, photo, park_id):
    """Single-photo variant of upsert_leaderboard_entries()."""
    return upsert_leaderboard_entries(user_id, [photo], park_id) > 0
