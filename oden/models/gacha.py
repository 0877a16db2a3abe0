from datetime import datetime
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from oden.core.db import Base

class SummonSessionRow(Base):
    __tablename__ = "summon_sessions"
    __table_args__ = (UniqueConstraint("user_id", "banner_id", name="uq_summon_sessions_user_banner"),)
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    banner_id: Mapped[str] = mapped_column(ForeignKey("banners.id", ondelete="CASCADE"))
    pull_count: Mapped[int] = mapped_column(Integer, default=0)
    last_top_rarity_at: Mapped[int] = mapped_column(Integer, default=0)
    has_guarantee: Mapped[bool] = mapped_column(Boolean, default=False)
    last_free_summon_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

class SummonResultRow(Base):
    __tablename__ = "summon_results"
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    banner_id: Mapped[str] = mapped_column(ForeignKey("banners.id", ondelete="CASCADE"))
    result_type: Mapped[str] = mapped_column(String(8))
    result_id: Mapped[str] = mapped_column(String(64))
    rarity: Mapped[str] = mapped_column(String(16))
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False)
    is_pity_break: Mapped[bool] = mapped_column(Boolean, default=False)
    pull_number: Mapped[int] = mapped_column(Integer)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
