"""
Rarity/pity resolution for a single summon pull.

The resolver is pure: it takes a banner, the caller's current
``SummonSession`` and an explicit ``random.Random`` and returns the drawn
rarity, the featured/pity flags and the *next* session state. Nothing here
reads the clock unless ``now`` is omitted, and nothing touches storage.

Cumulative table, highest tier first::

    [0, legendary + featured) -> legendary
    [.., + epic)              -> epic
    ...
    remainder                 -> common
"""
from __future__ import annotations

import random
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, Mapping

from oden.core.clock import utc_now
from oden.domain.entities import (
    LOWEST_RARITY,
    RARITIES_DESC,
    Banner,
    HeroBasicInfo,
    HeroType,
    ItemTemplate,
    Rarity,
    ResultKind,
    SummonRateInfo,
    SummonSession,
)
from oden.domain.errors import BannerInactive, InvalidBanner

RATE_EPSILON = 1e-9


def validate_banner(banner: Banner) -> None:
    if not banner.rates:
        raise InvalidBanner("Rate table is empty", banner_id=banner.id)
    for rarity, rate in banner.rates.items():
        if rate < 0:
            raise InvalidBanner(f"Negative rate for {Rarity(rarity).value}", banner_id=banner.id)
    if banner.featured_rate < 0:
        raise InvalidBanner("Negative featured rate", banner_id=banner.id)
    total = _table_total(banner)
    if total > 1 + RATE_EPSILON:
        raise InvalidBanner(f"Rates sum to {total:.6f}, must be <= 1", banner_id=banner.id)
    if banner.guarantee_threshold is not None and banner.guarantee_threshold < 1:
        raise InvalidBanner("Guarantee threshold must be >= 1", banner_id=banner.id)


def rarity_intervals(banner: Banner) -> list[tuple[Rarity, float]]:
    """Upper bounds of the cumulative table, highest rarity first."""
    top = banner.top_rarity
    cumulative = 0.0
    out: list[tuple[Rarity, float]] = []
    for rarity in RARITIES_DESC:
        width = banner.rates.get(rarity, 0.0)
        if rarity == top:
            width += banner.featured_rate
        if width <= 0:
            continue
        cumulative += width
        out.append((rarity, cumulative))
    return out


def draw_rarity(banner: Banner, rng: random.Random) -> Rarity:
    sample = rng.random()
    intervals = rarity_intervals(banner)
    for rarity, bound in intervals:
        if sample < bound:
            return rarity
    # a full table can sum to just under 1.0; that sliver belongs to its last tier
    if intervals and _table_total(banner) >= 1 - RATE_EPSILON:
        return intervals[-1][0]
    return LOWEST_RARITY


def _table_total(banner: Banner) -> float:
    return sum(banner.rates.values()) + banner.featured_rate


def featured_probability(banner: Banner) -> float:
    """Chance that an organic (non-guaranteed) top-rarity hit is featured."""
    top = banner.top_rarity
    denominator = banner.rates.get(top, 0.0) + banner.featured_rate
    if denominator <= 0:
        return 0.0
    return banner.featured_rate / denominator


def reachable_rarities(banner: Banner) -> set[Rarity]:
    out = {rarity for rarity, _ in rarity_intervals(banner)}
    if _table_total(banner) < 1 - RATE_EPSILON:
        out.add(LOWEST_RARITY)
    if banner.guarantee_threshold is not None and banner.top_rarity is not None:
        out.add(banner.top_rarity)
    return out


@dataclass(frozen=True)
class SummonPool:
    """Eligible entity ids per bucket, sorted so selection is reproducible."""

    kind: ResultKind
    featured: tuple[str, ...]
    standard: Mapping[Rarity, tuple[str, ...]]

    @classmethod
    def build(
        cls,
        banner: Banner,
        hero_types: Iterable[HeroType] = (),
        item_templates: Iterable[ItemTemplate] = (),
    ) -> "SummonPool":
        validate_banner(banner)
        templates = hero_types if banner.result_kind == ResultKind.HERO else item_templates
        by_id = {t.id: t for t in templates}

        restricted = banner.restricted_pool
        candidate_ids = sorted(set(restricted)) if restricted is not None else sorted(by_id)
        unknown = [tid for tid in candidate_ids if tid not in by_id]
        unknown += [tid for tid in banner.featured_ids if tid not in by_id]
        if unknown:
            raise InvalidBanner(f"Unknown {banner.result_kind.value} ids in pool: {sorted(unknown)}", banner_id=banner.id)

        top = banner.top_rarity
        off_tier = sorted(tid for tid in banner.featured_ids if by_id[tid].rarity != top)
        if off_tier:
            raise InvalidBanner(f"Featured ids must be {top.value}: {off_tier}", banner_id=banner.id)

        standard: dict[Rarity, list[str]] = {}
        for tid in candidate_ids:
            template = by_id[tid]
            if template.rarity == top and tid in banner.featured_ids:
                continue
            standard.setdefault(template.rarity, []).append(tid)

        pool = cls(
            kind=banner.result_kind,
            featured=tuple(sorted(banner.featured_ids)),
            standard={rarity: tuple(ids) for rarity, ids in standard.items()},
        )
        pool._check_coverage(banner)
        return pool

    def candidates(self, rarity: Rarity, featured: bool) -> tuple[str, ...]:
        if featured:
            return self.featured
        return self.standard.get(rarity, ())

    def _check_coverage(self, banner: Banner) -> None:
        top = banner.top_rarity
        for rarity in reachable_rarities(banner):
            if rarity == top and (self.featured or self.standard.get(top)):
                continue
            if not self.standard.get(rarity):
                raise InvalidBanner(f"No eligible entities at {rarity.value}", banner_id=banner.id)


@dataclass(frozen=True)
class PullResolution:
    rarity: Rarity
    is_featured: bool
    is_pity_break: bool
    session: SummonSession
    result_id: str | None = None


def resolve_pull(
    banner: Banner,
    session: SummonSession,
    rng: random.Random,
    pool: SummonPool | None = None,
    now: datetime | None = None,
) -> PullResolution:
    """Resolve one pull against ``session`` and return the next session state.

    When ``pool`` is given the concrete entity is also chosen, uniformly within
    the resolved bucket. Raises ``InvalidBanner`` for a malformed rate table
    and ``BannerInactive`` outside the banner window.
    """
    now = now or utc_now()
    validate_banner(banner)
    if not banner.is_active(now):
        raise BannerInactive(banner_id=banner.id)

    top = banner.top_rarity
    threshold = banner.guarantee_threshold
    is_pity_break = threshold is not None and session.pity + 1 >= threshold
    rarity = top if is_pity_break else draw_rarity(banner, rng)

    is_featured = False
    has_guarantee = session.has_guarantee
    if rarity == top:
        if pool is not None:
            featured_available = bool(pool.featured)
            standard_available = bool(pool.standard.get(top))
        else:
            featured_available = bool(banner.featured_ids)
            standard_available = True

        if has_guarantee:
            want_featured = True
        else:
            want_featured = rng.random() < featured_probability(banner)

        if want_featured and not featured_available:
            want_featured = False
        elif not want_featured and not standard_available and featured_available:
            want_featured = True

        is_featured = want_featured
        if is_featured:
            has_guarantee = False
        elif featured_available and banner.lost_featured_grants_guarantee:
            has_guarantee = True

    pull_count = session.pull_count + 1
    next_session = replace(
        session,
        pull_count=pull_count,
        last_top_rarity_at=pull_count if rarity == top else session.last_top_rarity_at,
        has_guarantee=has_guarantee,
    )

    result_id = None
    if pool is not None:
        candidates = pool.candidates(rarity, is_featured)
        if not candidates:
            raise InvalidBanner(f"No eligible entities at {rarity.value}", banner_id=banner.id)
        result_id = rng.choice(candidates)

    return PullResolution(
        rarity=rarity,
        is_featured=is_featured,
        is_pity_break=is_pity_break,
        session=next_session,
        result_id=result_id,
    )


def rate_info(
    banner: Banner,
    session: SummonSession | None,
    featured_heroes: Iterable[HeroType] = (),
) -> SummonRateInfo:
    return SummonRateInfo(
        banner_id=banner.id,
        legendary_rate=banner.top_rate,
        featured_hero_rate=banner.featured_rate,
        guarantee_threshold=banner.guarantee_threshold,
        current_pity=session.pity if session else 0,
        has_guarantee_active=session.has_guarantee if session else False,
        featured_heroes=tuple(
            HeroBasicInfo(id=h.id, name=h.name, rarity=h.rarity, image_url=h.image_url)
            for h in featured_heroes
        ),
    )
