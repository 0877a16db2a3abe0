from datetime import datetime
from sqlalchemy import DateTime, ForeignKey, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from oden.core.db import Base

class BattleResultRow(Base):
    __tablename__ = "battle_results"
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    team_id: Mapped[str] = mapped_column(String(64))
    stage_id: Mapped[str] = mapped_column(ForeignKey("stages.id"))
    result: Mapped[str] = mapped_column(String(8))  # victory/defeat
    battle_log: Mapped[list] = mapped_column(JSON)
    rewards_json: Mapped[str] = mapped_column(Text)  # Rewards.to_json()
    level_ups: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
