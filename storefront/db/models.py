from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, DateTime
from storefront.db.database import Base


class StoredValue(Base):
    """On-device key-value entry (tokens, participation cache, timer snapshots)."""

    __tablename__ = "stored_values"

    key = Column(String(200), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
