"""
Structured error kinds raised by the game cores.

Callers branch on ``kind`` (stable string) or ``category``; the HTTP layer
maps ``status_code`` onto the response. Every error here is raised before
any state is mutated and is deterministic for the same inputs, so none of
them is worth retrying.
"""
from __future__ import annotations

from typing import Any

VALIDATION = "validation"
RESOURCE = "resource"
INVARIANT = "invariant"


class GameError(Exception):
    kind = "game_error"
    category = VALIDATION
    status_code = 400
    default_message = "Game rule violated"

    def __init__(self, message: str | None = None, **context: Any):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict:
        out = {"kind": self.kind, "category": self.category, "message": self.message}
        if self.context:
            out["context"] = {k: str(v) for k, v in self.context.items()}
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GameError):
            return NotImplemented
        return (self.kind, self.message, self.context) == (other.kind, other.message, other.context)

    def __hash__(self) -> int:
        return hash((self.kind, self.message))


# Gacha

class BannerNotFound(GameError):
    kind = "banner_not_found"
    status_code = 404
    default_message = "Banner not found"


class BannerInactive(GameError):
    kind = "banner_inactive"
    status_code = 409
    default_message = "Banner is not active"


class InvalidPullKind(GameError):
    kind = "invalid_pull_kind"
    default_message = "Unsupported pull kind"


class InsufficientCurrency(GameError):
    kind = "insufficient_currency"
    category = RESOURCE
    status_code = 402
    default_message = "Not enough currency"


class AlreadyClaimedToday(GameError):
    kind = "already_claimed_today"
    category = RESOURCE
    status_code = 409
    default_message = "Free summon already claimed today"


class InvalidBanner(GameError):
    kind = "invalid_banner"
    category = INVARIANT
    status_code = 500
    default_message = "Banner configuration is invalid"


# Battle / teams

class EmptyTeam(GameError):
    kind = "empty_team"
    default_message = "Team has no heroes assigned"


class HeroNotOwned(GameError):
    kind = "hero_not_owned"
    status_code = 403
    default_message = "Hero does not belong to this user"


class StageNotFound(GameError):
    kind = "stage_not_found"
    status_code = 404
    default_message = "Stage not found"


class TeamNotFound(GameError):
    kind = "team_not_found"
    status_code = 404
    default_message = "Team not found"


class InvalidTeamPosition(GameError):
    kind = "invalid_team_position"
    default_message = "Team position must be between 1 and 5"


class DuplicateHeroInTeam(GameError):
    kind = "duplicate_hero_in_team"
    default_message = "Hero already occupies another position"


# Missions

class MissionNotFound(GameError):
    kind = "mission_not_found"
    status_code = 404
    default_message = "Mission not found"


class MissionNotClaimable(GameError):
    kind = "mission_not_claimable"
    category = RESOURCE
    status_code = 409
    default_message = "Mission is not completed"


class InvalidCatalog(GameError):
    kind = "invalid_catalog"
    category = INVARIANT
    status_code = 500
    default_message = "Content catalog references a missing template"
