import uuid
from datetime import datetime, timezone
from sqlalchemy import JSON, Boolean, String, DateTime, Float, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pingwatch.database import Base


class Check(Base):
    __tablename__ = "checks"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), default="standard")  # standard, http_request
    period: Mapped[int] = mapped_column(Integer, default=0)  # minutes, 0 when cron-scheduled
    grace: Mapped[int] = mapped_column(Integer, default=30)  # minutes
    cron_expression: Mapped[str | None] = mapped_column(String(255), nullable=True)
    http_config: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)  # probes and sweep skip paused checks
    status: Mapped[str] = mapped_column(String(20), default="new")  # new, up, grace, down
    last_ping: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    next_ping_due: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_duration: Mapped[float | None] = mapped_column(Float, nullable=True)  # seconds
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    pings: Mapped[list["Ping"]] = relationship(  # noqa: F821
        back_populates="check", cascade="all, delete-orphan"
    )
