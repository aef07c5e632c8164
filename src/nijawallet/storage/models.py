"""SQLAlchemy models for the sql key-value backend."""

from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class KVRecord(Base):
    """One persisted record (session, activity or policy snapshot)."""

    __tablename__ = "kv_records"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    namespace: Mapped[str] = mapped_column(String(32), nullable=False)
    key: Mapped[str] = mapped_column(String(160), nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("ix_kv_records_namespace_key", "namespace", "key", unique=True),)

    def __repr__(self) -> str:
        return f"<KVRecord {self.namespace}:{self.key}>"
