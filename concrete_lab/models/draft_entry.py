"""Key/value table backing the local draft store."""
from datetime import datetime, timezone

from concrete_lab.extensions import db


class DraftEntry(db.Model):
    """Serialized form snapshot stored under a string key."""
    __tablename__ = 'draft_entries'

    key = db.Column(db.String(100), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f'<DraftEntry {self.key}>'
