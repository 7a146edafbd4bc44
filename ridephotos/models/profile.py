"""Profile model.

Mirrors the public profile row Supabase keeps for each auth user. The id
is the Supabase auth user id; there are no local credentials.
Flask-Login integration via UserMixin.
"""

from flask_login import UserMixin

from ridephotos.extensions import db


class Profile(UserMixin, db.Model):
    __tablename__ = "profiles"

    id = db.Column(db.String(36), primary_key=True)  # auth.users.id
    email = db.Column(db.String(255))
    display_name = db.Column(db.String(255))
    park_id = db.Column(db.String(36), nullable=True)  # home park
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self):
        return f"<Profile {self.email}>"
