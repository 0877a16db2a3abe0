from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from oden.core.clock import as_utc


@dataclass(frozen=True)
class IdleRewards:
    minutes: int
    gold: int
    experience: int
    # new value for PlayerResources.last_idle_claim
    claimed_until: datetime

    @property
    def empty(self) -> bool:
        return self.gold <= 0 and self.experience <= 0


def compute_idle_rewards(
    last_claim: datetime | None,
    now: datetime,
    gold_per_minute: int,
    exp_per_minute: int,
    max_hours: int,
) -> IdleRewards:
    """Whole minutes since ``last_claim``, capped at ``max_hours``.

    A player who never claimed starts the clock now and earns nothing. Left
    over seconds carry into the next claim unless the cap was hit.
    """
    now = as_utc(now)
    if last_claim is None:
        return IdleRewards(minutes=0, gold=0, experience=0, claimed_until=now)

    last_claim = as_utc(last_claim)
    elapsed = max(0, int((now - last_claim).total_seconds() // 60))
    cap = max(0, int(max_hours)) * 60
    if elapsed >= cap:
        minutes, claimed_until = cap, now
    else:
        minutes, claimed_until = elapsed, last_claim + timedelta(minutes=elapsed)
    return IdleRewards(
        minutes=minutes,
        gold=minutes * max(0, int(gold_per_minute)),
        experience=minutes * max(0, int(exp_per_minute)),
        claimed_until=claimed_until,
    )
