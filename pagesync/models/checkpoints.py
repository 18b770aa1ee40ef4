"""Powers incremental sync: newest document edit seen per data source"""

from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from pagesync.models.base import Base


class SyncCheckpoint(Base):
    __tablename__ = "sync_checkpoints"

    data_source_id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
    )

    last_edited_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
