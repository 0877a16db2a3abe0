import pytest

from oden.domain.entities import CurrencyKind, PlayerResources, Rewards, Team
from oden.domain.errors import (
    BannerNotFound,
    DuplicateHeroInTeam,
    GameError,
    InsufficientCurrency,
    InvalidBanner,
    InvalidTeamPosition,
)


class TestTeam:
    def test_from_positions_accepts_string_keys(self):
        team = Team.from_positions("t1", "u", {"1": "h1", "3": "h3", "5": None})

        assert team.slots == ("h1", None, "h3", None, None)
        assert team.positions() == {1: "h1", 3: "h3"}
        assert team.count() == 2

    @pytest.mark.parametrize("position", ["6", "0", "x", 7])
    def test_bad_positions(self, position):
        with pytest.raises(InvalidTeamPosition):
            Team.from_positions("t1", "u", {position: "h1"})

    def test_duplicate_hero(self):
        with pytest.raises(DuplicateHeroInTeam):
            Team.from_positions("t1", "u", {1: "h1", 2: "h1"})

    def test_assign_and_clear(self):
        team = Team(id="t1", user_id="u").assign(2, "h1")

        assert team.hero_at(2) == "h1"
        assert team.assign(2, None).hero_ids() == []

    def test_assign_rejects_hero_held_elsewhere(self):
        team = Team(id="t1", user_id="u").assign(2, "h1")

        with pytest.raises(DuplicateHeroInTeam):
            team.assign(4, "h1")
        # same slot again is fine
        assert team.assign(2, "h1") == team


class TestResources:
    def test_debit_and_credit(self):
        res = PlayerResources(user_id="u", gold=100, gems=50)

        assert res.debit(CurrencyKind.GOLD, 40).gold == 60
        assert res.credit(CurrencyKind.GEM, 10).gems == 60
        assert res.gold == 100

    def test_insufficient(self):
        with pytest.raises(InsufficientCurrency) as exc:
            PlayerResources(user_id="u", gems=5).debit(CurrencyKind.GEM, 10)

        assert exc.value.context == {"currency": "gem", "required": 10, "available": 5}

    def test_negative_amounts_are_programming_errors(self):
        with pytest.raises(ValueError):
            PlayerResources(user_id="u").credit(CurrencyKind.GOLD, -1)


class TestRewards:
    def test_json(self):
        rewards = Rewards(gold=5, experience={"h1": 3}, items=("ore",))

        assert Rewards.from_json(rewards.to_json()) == rewards
        assert Rewards.from_json(None) == Rewards()


class TestErrors:
    def test_to_dict(self):
        err = BannerNotFound(banner_id="b9")

        assert err.to_dict() == {
            "kind": "banner_not_found",
            "category": "validation",
            "message": "Banner not found",
            "context": {"banner_id": "b9"},
        }
        assert err.status_code == 404

    def test_custom_message(self):
        err = InvalidBanner("Rate table is empty")

        assert str(err) == "Rate table is empty"
        assert err.category == "invariant"
        assert "context" not in err.to_dict()

    def test_equality_by_kind_message_context(self):
        assert BannerNotFound(banner_id="a") == BannerNotFound(banner_id="a")
        assert BannerNotFound(banner_id="a") != BannerNotFound(banner_id="b")
        assert isinstance(InsufficientCurrency(), GameError)
