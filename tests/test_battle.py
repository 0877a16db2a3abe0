import pytest

from oden.domain.battle import SPLIT_SURVIVORS, resolve_stage, roll_drops, split_experience, team_heroes
from oden.domain.entities import Hero, Item, Outcome, Rewards, Stage, StageDrop, Team
from oden.domain.errors import EmptyTeam, HeroNotOwned, InvalidCatalog, StageNotFound, TeamNotFound
from tests.factories import T0, StubRng, enemy, hero_types, item_templates


def ids():
    counter = iter(range(1, 1000))
    return lambda: f"id{next(counter)}"


def stage(**overrides):
    values = dict(id="s1", name="Shore", enemy_type_ids=("wolf",), gold_reward=100, exp_reward=250)
    values.update(overrides)
    return Stage(**values)


def heroes():
    return {
        "h1": Hero(id="h1", user_id="u", hero_type_id="legend"),
        "h2": Hero(id="h2", user_id="u", hero_type_id="common"),
    }


def run(team=None, stage_=None, **kw):
    values = dict(
        user_id="u",
        team=team or Team(id="t1", user_id="u", slots=("h1", "h2", None, None, None)),
        heroes=heroes(),
        hero_types=hero_types(),
        stage=stage_ if stage_ is not None else stage(),
        enemy_types={"wolf": enemy("wolf", hp=80, atk=20), "giant": enemy("giant", hp=100000, atk=5000)},
        rng=StubRng(),
        now=T0,
        item_templates=item_templates(),
        id_factory=ids(),
    )
    values.update(kw)
    return resolve_stage(**values)


class TestValidation:
    def test_foreign_team(self):
        with pytest.raises(TeamNotFound):
            run(team=Team(id="t1", user_id="someone_else", slots=("h1", None, None, None, None)))

    def test_empty_team(self):
        with pytest.raises(EmptyTeam):
            run(team=Team(id="t1", user_id="u"))

    def test_hero_not_owned(self):
        with pytest.raises(HeroNotOwned):
            run(team=Team(id="t1", user_id="u", slots=("h1", "ghost", None, None, None)))

    def test_team_checks_come_before_stage(self):
        with pytest.raises(EmptyTeam):
            resolve_stage(
                user_id="u", team=Team(id="t1", user_id="u"), heroes={}, hero_types={},
                stage=None, enemy_types={}, rng=StubRng(), now=T0,
            )

    def test_missing_stage(self):
        with pytest.raises(StageNotFound):
            resolve_stage(
                user_id="u", team=Team(id="t1", user_id="u", slots=("h1", None, None, None, None)),
                heroes=heroes(), hero_types=hero_types(), stage=None, enemy_types={}, rng=StubRng(), now=T0,
            )

    def test_unknown_enemy_in_stage(self):
        with pytest.raises(InvalidCatalog):
            run(stage_=stage(enemy_type_ids=("dragon",)))

    def test_team_heroes_in_position_order(self):
        team = Team(id="t1", user_id="u", slots=(None, None, "h2", None, "h1"))

        assert [(p, h.id) for p, h in team_heroes("u", team, heroes())] == [(3, "h2"), (5, "h1")]


class TestRewards:
    def test_victory_grants_gold_and_split_experience(self):
        out = run()

        assert out.victory
        assert out.result.result == Outcome.VICTORY
        assert out.result.rewards.gold == 100
        assert out.result.rewards.experience == {"h1": 125, "h2": 125}
        assert out.result.stage_id == "s1"
        assert out.result.team_id == "t1"

    def test_level_ups_are_reported(self):
        out = run()

        assert {(lu.hero_id, lu.old_level, lu.new_level) for lu in out.result.level_ups} == {
            ("h1", 1, 2),
            ("h2", 1, 2),
        }
        assert {h.id: (h.level, h.experience) for h in out.heroes} == {"h1": (2, 125), "h2": (2, 125)}

    def test_survivor_split_leaves_fallen_heroes_out(self):
        # the wolf gets one bite in, on the common hero
        team = Team(id="t1", user_id="u", slots=("h1", "h2", None, None, None))
        wolves = {"wolf": enemy("wolf", hp=150, atk=400)}

        out = run(team=team, enemy_types=wolves, exp_split=SPLIT_SURVIVORS)

        assert out.victory
        assert out.report.survivors == ("h1",)
        assert out.result.rewards.experience == {"h1": 250}

    def test_defeat_has_no_rewards(self):
        out = run(stage_=stage(enemy_type_ids=("giant",), drops=(StageDrop("ore", 1.0),)))

        assert out.result.result == Outcome.DEFEAT
        assert out.result.rewards == Rewards()
        assert out.heroes == ()
        assert out.items == ()
        assert out.result.level_ups == ()

    def test_drops_are_granted(self):
        owned = [Item(id="i9", user_id="u", item_template_id="ore", quantity=2)]
        out = run(
            stage_=stage(drops=(StageDrop("ore", 1.0), StageDrop("sword", 1.0), StageDrop("potion", 0.0))),
            owned_items=owned,
        )

        assert out.result.rewards.items == ("ore", "sword")
        assert {(i.item_template_id, i.quantity) for i in out.items} == {("ore", 3), ("sword", 1)}
        assert [i.id for i in out.items if i.item_template_id == "ore"] == ["i9"]

    def test_log_is_kept_on_the_result(self):
        out = run()

        assert out.result.battle_log == out.report.turns
        assert out.result.battle_log[0].actions[0].actor == "h1"


class TestHelpers:
    def test_split_remainder_goes_to_earliest(self):
        assert split_experience(10, ["a", "b", "c"]) == {"a": 4, "b": 3, "c": 3}

    def test_split_nothing(self):
        assert split_experience(10, []) == {}
        assert split_experience(0, ["a"]) == {}

    def test_roll_drops(self):
        s = stage(drops=(StageDrop("ore", 0.5), StageDrop("potion", 0.5)))

        assert roll_drops(s, StubRng(0.2, 0.7)) == ("ore",)
