"""Service flows against an in-memory sqlite database seeded with the bundled catalog."""
import asyncio
from dataclasses import replace

import pytest

from oden.core.rng import seeded
from oden.domain.entities import Hero, MissionStatus, Outcome, Rarity, SummonSession
from oden.domain.errors import (
    AlreadyClaimedToday,
    BannerNotFound,
    EmptyTeam,
    HeroNotOwned,
    InsufficientCurrency,
    InvalidPullKind,
    InvalidTeamPosition,
    MissionNotClaimable,
    MissionNotFound,
    StageNotFound,
    TeamNotFound,
)
from oden.services import battle_service, gacha_service, hero_service, idle_service, mission_service, team_service
from oden.services.store import GameStore
from tests.factories import T0

USER = "u1"


async def give_heroes(db, user_id=USER, **by_id):
    store = GameStore(db)
    await store.ensure_user(user_id)
    for hero_id, type_id in by_id.items():
        await store.save_hero(Hero(id=hero_id, user_id=user_id, hero_type_id=type_id, created_at=T0))
    await db.commit()


class TestSummon:
    async def test_single_pull_debits_and_grants(self, db, clock, locks):
        out = await gacha_service.summon(db, USER, "standard", "single", rng_factory=seeded(7), clock=clock, locks=locks)

        assert len(out.results) == 1
        assert out.results[0].pull_number == 1
        assert len(out.new_heroes) == 1

        resources = await hero_service.get_resources(db, USER)
        assert resources.gems == 300 - 160
        heroes = await hero_service.list_heroes(db, USER)
        assert [h.hero_type_id for h in heroes] == [out.results[0].result_id]
        assert len(await GameStore(db).list_summon_results(USER)) == 1

    async def test_same_seed_same_results(self, session_factory, clock, locks):
        pulled = []
        for user in ("a", "b"):
            async with session_factory() as db:
                out = await gacha_service.summon(db, user, "forge", "single", rng_factory=seeded(3), clock=clock, locks=locks)
                pulled.append([(r.rarity, r.result_id) for r in out.results])

        assert pulled[0] == pulled[1]

    async def test_insufficient_currency_changes_nothing(self, db, clock, locks):
        with pytest.raises(InsufficientCurrency):
            await gacha_service.summon(db, USER, "standard", "ten", rng_factory=seeded(1), clock=clock, locks=locks)

        store = GameStore(db)
        assert (await hero_service.get_resources(db, USER)).gems == 300
        assert (await store.get_summon_session(USER, "standard")).pull_count == 0
        assert await store.list_summon_results(USER) == []
        assert await store.list_heroes(USER) == []

    async def test_failed_summon_retries_identically(self, db, clock, locks):
        errors = []
        for _ in range(2):
            with pytest.raises(InsufficientCurrency) as caught:
                await gacha_service.summon(db, USER, "standard", "ten", rng_factory=seeded(1), clock=clock, locks=locks)
            errors.append(caught.value)

        assert errors[0] == errors[1]
        assert (await hero_service.get_resources(db, USER)).gems == 300
        assert (await GameStore(db).get_summon_session(USER, "standard")).pull_count == 0

    async def test_concurrent_pulls_cannot_overspend(self, db, session_factory, clock, locks):
        store = GameStore(db)
        await store.save_resources(replace(await store.get_resources(USER), gems=160))
        await db.commit()

        async def attempt():
            async with session_factory() as s:
                return await gacha_service.summon(s, USER, "standard", "single", rng_factory=seeded(7), clock=clock, locks=locks)

        outcomes = await asyncio.gather(attempt(), attempt(), return_exceptions=True)

        failures = [o for o in outcomes if isinstance(o, BaseException)]
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientCurrency)
        async with session_factory() as fresh:
            check = GameStore(fresh)
            assert (await check.get_resources(USER)).gems == 0
            assert (await check.get_summon_session(USER, "standard")).pull_count == 1
            assert len(await check.list_summon_results(USER)) == 1

    async def test_unknown_banner_and_kind(self, db, clock, locks):
        with pytest.raises(BannerNotFound):
            await gacha_service.summon(db, USER, "nope", "single", clock=clock, locks=locks)
        with pytest.raises(InvalidPullKind):
            await gacha_service.summon(db, USER, "standard", "hundred", clock=clock, locks=locks)

    async def test_daily_free_once_per_day(self, db, clock, locks):
        await gacha_service.summon(db, USER, "standard", "daily_free", rng_factory=seeded(2), clock=clock, locks=locks)
        with pytest.raises(AlreadyClaimedToday):
            await gacha_service.summon(db, USER, "standard", "daily_free", rng_factory=seeded(2), clock=clock, locks=locks)

        clock.advance(days=1)
        await gacha_service.summon(db, USER, "standard", "daily_free", rng_factory=seeded(2), clock=clock, locks=locks)

        assert (await hero_service.get_resources(db, USER)).gems == 300
        assert (await GameStore(db).get_summon_session(USER, "standard")).pull_count == 2

    async def test_free_summon_not_offered(self, db, clock, locks):
        with pytest.raises(InvalidPullKind):
            await gacha_service.summon(db, USER, "allfather", "daily_free", clock=clock, locks=locks)

    async def test_pity_carries_across_requests(self, db, clock, locks):
        store = GameStore(db)
        await store.get_resources(USER)
        await store.save_summon_session(SummonSession(user_id=USER, banner_id="standard", pull_count=89))
        await db.commit()

        info = await gacha_service.get_rate_info(db, USER, "standard")
        assert info.current_pity == 89
        assert info.guarantee_threshold == 90

        out = await gacha_service.summon(db, USER, "standard", "single", rng_factory=seeded(5), clock=clock, locks=locks)
        pull = out.results[0]

        assert pull.is_pity_break
        assert pull.rarity == Rarity.LEGENDARY
        assert pull.pull_number == 90
        assert (await gacha_service.get_rate_info(db, USER, "standard")).current_pity == 0

    async def test_rate_info_lists_featured(self, db):
        info = await gacha_service.get_rate_info(db, USER, "allfather")

        assert info.legendary_rate == pytest.approx(0.04)
        assert info.featured_hero_rate == pytest.approx(0.02)
        assert [h.id for h in info.featured_heroes] == ["odin_allfather"]
        assert not info.has_guarantee_active

    async def test_list_banners(self, db, clock):
        banners = await gacha_service.list_banners(db, clock=clock)

        assert [b.id for b in banners] == ["allfather", "forge", "standard"]


class TestTeams:
    async def test_save_and_read(self, db, clock):
        await give_heroes(db, h1="thor_thunderer", h2="odin_allfather")

        saved = await team_service.save_team(db, USER, "main", {"1": "h1", "3": "h2"}, clock=clock)
        team = await team_service.get_team(db, USER, "main")

        assert team.slots == ("h1", None, "h2", None, None)
        assert team == saved

    async def test_rejects_foreign_hero(self, db, clock):
        await give_heroes(db, user_id="other", h9="thrall")

        with pytest.raises(HeroNotOwned):
            await team_service.save_team(db, USER, "main", {"1": "h9"}, clock=clock)

    async def test_rejects_bad_position(self, db, clock):
        with pytest.raises(InvalidTeamPosition):
            await team_service.save_team(db, USER, "main", {"6": None}, clock=clock)

    async def test_other_users_team_is_not_found(self, db, clock):
        await give_heroes(db, user_id="other", h9="thrall")
        await team_service.save_team(db, "other", "theirs", {"1": "h9"}, clock=clock)

        with pytest.raises(TeamNotFound):
            await team_service.get_team(db, USER, "theirs")
        with pytest.raises(TeamNotFound):
            await team_service.save_team(db, USER, "theirs", {}, clock=clock)


class TestBattles:
    async def setup_team(self, db, clock):
        await give_heroes(db, thor="thor_thunderer", odin="odin_allfather")
        await team_service.save_team(db, USER, "main", {"1": "thor", "2": "odin"}, clock=clock)

    async def test_victory_pays_out(self, db, clock, locks):
        await self.setup_team(db, clock)

        result = await battle_service.resolve_stage(db, USER, "main", "midgard_1", rng_factory=seeded(4), clock=clock, locks=locks)

        assert result.result == Outcome.VICTORY
        assert result.rewards.gold == 100
        assert result.rewards.experience == {"thor": 60, "odin": 60}
        assert (await hero_service.get_resources(db, USER)).gold == 1100
        assert {h.id: h.experience for h in await hero_service.list_heroes(db, USER)} == {"thor": 60, "odin": 60}

        stored = await battle_service.get_battle(db, USER, result.id)
        assert stored.battle_log == result.battle_log
        assert stored.battle_log[0].actions[0].actor == "thor"
        assert await battle_service.get_battle(db, "someone", result.id) is None

    async def test_validation(self, db, clock, locks):
        await self.setup_team(db, clock)
        await team_service.save_team(db, USER, "empty", {}, clock=clock)

        with pytest.raises(TeamNotFound):
            await battle_service.resolve_stage(db, USER, "ghost", "midgard_1", clock=clock, locks=locks)
        with pytest.raises(EmptyTeam):
            await battle_service.resolve_stage(db, USER, "empty", "midgard_1", clock=clock, locks=locks)
        with pytest.raises(StageNotFound):
            await battle_service.resolve_stage(db, USER, "main", "asgard_99", clock=clock, locks=locks)
        assert (await hero_service.get_resources(db, USER)).gold == 1000

    async def test_rejected_battle_retries_identically(self, db, clock, locks):
        await self.setup_team(db, clock)
        await team_service.save_team(db, USER, "empty", {}, clock=clock)

        errors = []
        for _ in range(2):
            with pytest.raises(EmptyTeam) as caught:
                await battle_service.resolve_stage(db, USER, "empty", "midgard_1", clock=clock, locks=locks)
            errors.append(caught.value)

        assert errors[0] == errors[1]
        assert (await hero_service.get_resources(db, USER)).gold == 1000
        assert {h.id: h.experience for h in await hero_service.list_heroes(db, USER)} == {"thor": 0, "odin": 0}

    async def test_hero_stats_stable_across_reads(self, session_factory, clock, locks):
        async with session_factory() as db:
            await self.setup_team(db, clock)
            await battle_service.resolve_stage(db, USER, "main", "midgard_1", rng_factory=seeded(4), clock=clock, locks=locks)
            first = await hero_service.list_heroes(db, USER)
            again = await hero_service.list_heroes(db, USER)
        async with session_factory() as db:
            reloaded = await hero_service.list_heroes(db, USER)

        assert first == again == reloaded


class TestMissions:
    async def test_summon_completes_daily_and_claim_pays(self, db, clock, locks):
        await mission_service.assign_missions(db, USER, clock=clock)
        await gacha_service.summon(db, USER, "standard", "single", rng_factory=seeded(7), clock=clock, locks=locks)

        views = {v.template.id: v.mission for v in await mission_service.list_missions(db, USER, clock=clock)}
        daily = views["daily_summon"]
        assert daily.status == MissionStatus.COMPLETED
        assert views["weekly_spender"].current_value == 160
        assert views["achievement_roster"].current_value == 1

        claim = await mission_service.claim(db, USER, daily.id, clock=clock, locks=locks)

        assert claim.gems == 30
        assert (await hero_service.get_resources(db, USER)).gems == 300 - 160 + 30
        with pytest.raises(MissionNotClaimable):
            await mission_service.claim(db, USER, daily.id, clock=clock, locks=locks)

    async def test_battles_advance_missions(self, db, clock, locks):
        await give_heroes(db, thor="thor_thunderer", odin="odin_allfather")
        await team_service.save_team(db, USER, "main", {"1": "thor", "2": "odin"}, clock=clock)
        await mission_service.assign_missions(db, USER, clock=clock)

        await battle_service.resolve_stage(db, USER, "main", "midgard_1", rng_factory=seeded(4), clock=clock, locks=locks)

        views = {v.template.id: v.mission for v in await mission_service.list_missions(db, USER, clock=clock)}
        assert views["daily_battles"].current_value == 1
        assert views["daily_wins"].current_value == 1
        assert views["weekly_slayer"].current_value == 2
        # only counts wins on midgard_2
        assert views["story_pass"].current_value == 0

    async def test_cannot_claim_unfinished_or_foreign(self, db, clock, locks):
        missions = await mission_service.assign_missions(db, USER, ["daily_wins"], clock=clock)

        with pytest.raises(MissionNotClaimable):
            await mission_service.claim(db, USER, missions[0].id, clock=clock, locks=locks)
        with pytest.raises(MissionNotFound):
            await mission_service.claim(db, "someone", missions[0].id, clock=clock, locks=locks)

    async def test_daily_missions_roll_over(self, db, clock):
        first = await mission_service.assign_missions(db, USER, ["daily_wins"], clock=clock)
        assert await mission_service.assign_missions(db, USER, ["daily_wins"], clock=clock) == []

        clock.advance(days=1)
        again = await mission_service.assign_missions(db, USER, ["daily_wins"], clock=clock)

        assert len(again) == 1
        assert again[0].id != first[0].id


class TestIdle:
    async def test_first_claim_starts_the_clock(self, db, clock, locks):
        out = await idle_service.claim_idle(db, USER, clock=clock, locks=locks)

        assert (out.minutes, out.gold) == (0, 0)
        assert (await hero_service.get_resources(db, USER)).last_idle_claim == T0

    async def test_claim_after_ninety_minutes(self, db, clock, locks):
        await idle_service.claim_idle(db, USER, clock=clock, locks=locks)
        clock.advance(minutes=90)

        preview = await idle_service.preview_idle(db, USER, clock=clock)
        out = await idle_service.claim_idle(db, USER, clock=clock, locks=locks)

        assert preview.gold == out.gold == 900
        assert (await hero_service.get_resources(db, USER)).gold == 1900

    async def test_team_shares_experience(self, db, clock, locks):
        await give_heroes(db, thor="thor_thunderer", odin="odin_allfather")
        await team_service.save_team(db, USER, "main", {"1": "thor", "2": "odin"}, clock=clock)
        await idle_service.claim_idle(db, USER, clock=clock, locks=locks)
        clock.advance(minutes=45)

        out = await idle_service.claim_idle(db, USER, "main", clock=clock, locks=locks)

        # 45 minutes at 5 exp
        assert out.experience == {"thor": 113, "odin": 112}
        assert {(lu.hero_id, lu.new_level) for lu in out.level_ups} == {("thor", 2), ("odin", 2)}
