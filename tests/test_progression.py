from datetime import datetime, timedelta, timezone

from oden.domain.entities import (
    Hero,
    HeroType,
    MissionStatus,
    MissionTemplate,
    MissionType,
    Rarity,
    RequirementType,
)
from oden.domain.progression import (
    add_experience,
    advance_mission,
    claim_mission,
    hero_details,
    hero_stats,
    is_expired,
    level_for_experience,
    new_mission,
)
from tests.factories import STRIKE, T0


def template(kind=MissionType.DAILY, target=3, **kw):
    return MissionTemplate(
        id="m1",
        title="Win some",
        type=kind,
        requirement_type=RequirementType.WIN_BATTLES,
        target_value=target,
        **kw,
    )


class TestLevels:
    def test_level_from_experience(self):
        assert level_for_experience(0) == 1
        assert level_for_experience(99) == 1
        assert level_for_experience(100) == 2
        assert level_for_experience(250) == 3

    def test_stats_grow_ten_percent_per_level(self):
        hero_type = HeroType(id="t", name="T", rarity=Rarity.RARE, base_hp=500, base_atk=55)

        assert hero_stats(hero_type, 1).atk == 55
        assert hero_stats(hero_type, 2).atk == 60
        assert hero_stats(hero_type, 3).hp == 600

    def test_add_experience_reports_level_change(self):
        hero = Hero(id="h1", user_id="u", hero_type_id="t", level=1, experience=90)

        up = add_experience(hero, 20)

        assert up.leveled_up
        assert (up.old_level, up.new_level) == (1, 2)
        assert up.hero.experience == 110
        assert hero.experience == 90

    def test_add_nothing(self):
        hero = Hero(id="h1", user_id="u", hero_type_id="t")

        assert not add_experience(hero, 0).leveled_up

    def test_hero_details(self):
        hero_type = HeroType(id="t", name="Thane", rarity=Rarity.EPIC, base_hp=800, base_atk=80, skills=(STRIKE,))
        hero = Hero(id="h1", user_id="u", hero_type_id="t", level=2, experience=120)

        details = hero_details(hero, hero_type)

        assert (details.name, details.rarity, details.level, details.hp, details.atk) == ("Thane", Rarity.EPIC, 2, 880, 88)
        assert details.skills == (STRIKE,)

    def test_recomputing_is_stable(self):
        hero_type = HeroType(id="t", name="Thane", rarity=Rarity.EPIC, base_hp=800, base_atk=80)
        hero = Hero(id="h1", user_id="u", hero_type_id="t", level=3, experience=260)

        assert hero_stats(hero_type, 3) == hero_stats(hero_type, 3)
        assert hero_details(hero, hero_type) == hero_details(hero, hero_type)
        assert add_experience(hero, 0).hero == hero
        assert add_experience(add_experience(hero, 0).hero, 0).hero == hero


class TestMissions:
    def test_daily_expires_next_midnight(self):
        m = new_mission("x", "u", template(MissionType.DAILY), T0)

        assert m.expires_at == datetime(2025, 3, 15, tzinfo=timezone.utc)
        assert m.status == MissionStatus.IN_PROGRESS

    def test_weekly_expires_in_seven_days(self):
        m = new_mission("x", "u", template(MissionType.WEEKLY), T0)

        assert m.expires_at == datetime(2025, 3, 21, tzinfo=timezone.utc)

    def test_story_never_expires(self):
        m = new_mission("x", "u", template(MissionType.STORY), T0)

        assert m.expires_at is None
        assert not is_expired(m, T0 + timedelta(days=365))

    def test_expiry(self):
        m = new_mission("x", "u", template(MissionType.DAILY), T0)

        assert not is_expired(m, T0 + timedelta(hours=12))
        assert is_expired(m, T0 + timedelta(hours=12, seconds=1))

    def test_progress_until_complete(self):
        t = template(target=3)
        m = new_mission("x", "u", t, T0)

        m, done = advance_mission(m, t, 2, T0)
        assert (m.current_value, done) == (2, False)

        m, done = advance_mission(m, t, 5, T0)
        assert done
        assert m.status == MissionStatus.COMPLETED
        assert m.current_value == 3
        assert m.completed_at == T0

    def test_completed_missions_stop_moving(self):
        t = template(target=1)
        m, _ = advance_mission(new_mission("x", "u", t, T0), t, 1, T0)

        again, done = advance_mission(m, t, 1, T0)

        assert again is m
        assert not done

    def test_claim_only_completed(self):
        t = template(target=1)
        m = new_mission("x", "u", t, T0)

        assert claim_mission(m, T0) == (m, False)

        m, _ = advance_mission(m, t, 1, T0)
        claimed, ok = claim_mission(m, T0)
        assert ok
        assert claimed.status == MissionStatus.CLAIMED
        assert claimed.claimed_at == T0
        assert claim_mission(claimed, T0) == (claimed, False)
