"""
Database models
SQLAlchemy ORM model for the SportMonks type taxonomy
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


class SportMonksType(Base):
    """
    One entry of the SportMonks type taxonomy (statistics, events,
    injury/suspension reasons, ...).

    Rows are written only by the type resync, keyed by the SportMonks id,
    and never deleted.
    """
    __tablename__ = "sportmonks_types"

    id = Column(Integer, primary_key=True, autoincrement=False)
    parent_id = Column(
        Integer,
        ForeignKey("sportmonks_types.id", ondelete="SET NULL", onupdate="CASCADE"),
        nullable=True,
    )
    name = Column(String, nullable=False)
    # Some upstream types carry no code; NULLs do not collide on the unique index
    code = Column(String, unique=True, nullable=True, index=True)
    developer_name = Column(String, nullable=False, index=True)
    model_type = Column(String, nullable=False, index=True)
    group = Column(String, nullable=True)
    stat_group = Column(String, nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<SportMonksType(id={self.id}, code='{self.code}', model_type='{self.model_type}')>"
