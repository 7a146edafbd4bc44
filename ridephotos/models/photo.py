"""Photo model (read-only for this service).

Rows are written by the camera ingest pipeline. Fulfillment only reads
them to resolve day-pass sets, capture dates and ride speeds.
"""

import uuid

from ridephotos.extensions import db


class Photo(db.Model):
    __tablename__ = "photos"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    park_id = db.Column(db.String(36), nullable=True, index=True)
    captured_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    storage_path = db.Column(db.String(1024), nullable=False)
    speed_kmh = db.Column(db.Float, nullable=True)  # may be missing, see resolve_speed_kmh

    def __repr__(self):
        return f"<Photo {self.storage_path}>"
