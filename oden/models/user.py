from datetime import datetime
from sqlalchemy import String, DateTime, BigInteger, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from oden.core.db import Base

class User(Base):
    __tablename__ = "users"
    # JWT "sub"; accounts are issued by the auth service
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

class PlayerResourcesRow(Base):
    __tablename__ = "player_resources"
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    gold: Mapped[int] = mapped_column(BigInteger, default=0)
    gems: Mapped[int] = mapped_column(BigInteger, default=0)
    summon_tickets: Mapped[int] = mapped_column(BigInteger, default=0)
    special_tickets: Mapped[int] = mapped_column(BigInteger, default=0)
    last_idle_claim: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
