from sqlalchemy import (
    Column,
    String,
    Text,
    DateTime,
    JSON,
    Float,
    Integer,
    Index,
)

from sqlalchemy.orm import declarative_base

Base = declarative_base()


class KeyValueItem(Base):
    """Process-wide persisted settings (quota, license, preferences)."""

    __tablename__ = "kv_items"

    key = Column(String(128), primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<KeyValueItem(key={self.key})>"


class CacheEntryRow(Base):
    """One snapshot per normalized URL; overwritten wholesale on refresh."""

    __tablename__ = "cache_entries"

    __table_args__ = (Index("ix_cache_entries_cached_at", "cached_at"),)

    # Normalized URL (scheme + host + path)
    url = Column(Text, primary_key=True)

    published = Column(DateTime(timezone=True), nullable=True)
    modified = Column(DateTime(timezone=True), nullable=True)
    confidence = Column(Float, nullable=False, default=0.0)
    source = Column(String(50), nullable=False, default="none")

    cached_at = Column(DateTime(timezone=True), nullable=False)
    # Only set on negative ("no date found") entries
    negative_ttl_seconds = Column(Integer, nullable=True)

    def __repr__(self):
        return f"<CacheEntryRow(url={self.url}, source={self.source})>"
