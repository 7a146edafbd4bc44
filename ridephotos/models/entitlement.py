"""Entitlement models.

- UnlockedPhoto: grants a user permanent access to one photo. Unique on
  (user_id, photo_id); re-granting is a no-op.
- LeaderboardEntry: per-user-per-photo speed record. Unique on
  (user_id, photo_id); a later write overwrites speed and ride date.

Written only by the fulfillment pipeline, via the upserts in
services/entitlement_service.py.
"""

import uuid

from ridephotos.extensions import db


class UnlockedPhoto(db.Model):
    __tablename__ = "unlocked_photos"
    __table_args__ = (
        db.UniqueConstraint("user_id", "photo_id", name="uq_unlocked_photos_user_photo"),
    )

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(db.String(36), nullable=False, index=True)
    photo_id = db.Column(db.String(36), nullable=False)
    park_id = db.Column(db.String(36), nullable=True)
    unlocked_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<UnlockedPhoto {self.user_id} -> {self.photo_id}>"


class LeaderboardEntry(db.Model):
    __tablename__ = "leaderboard_entries"
    __table_args__ = (
        db.UniqueConstraint("user_id", "photo_id", name="uq_leaderboard_entries_user_photo"),
    )

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(db.String(36), nullable=False, index=True)
    photo_id = db.Column(db.String(36), nullable=False)
    speed_kmh = db.Column(db.Float, nullable=False)
    ride_date = db.Column(db.Date, nullable=False, index=True)
    park_id = db.Column(db.String(36), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<LeaderboardEntry {self.user_id} {self.speed_kmh} km/h>"
