import httpx
import pytest
from jose import jwt

from oden.api.deps import get_db
from oden.core.config import settings
from oden.main import app


def token(sub="player-1"):
    return jwt.encode({"sub": sub}, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def auth(sub="player-1"):
    return {"Authorization": f"Bearer {token(sub)}"}


@pytest.fixture
async def client(session_factory):
    async def override_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def test_requires_token(client):
    r = await client.get("/heroes")
    assert r.status_code == 401

    r = await client.get("/heroes", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


async def test_banner_list_is_public(client):
    r = await client.get("/gacha/banners")

    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    standard = next(b for b in body["banners"] if b["id"] == "standard")
    assert standard["cost_single"] == 160
    assert standard["has_daily_free_summon"] is True


async def test_unknown_banner_error_shape(client):
    r = await client.post("/gacha/summon", json={"banner_id": "nope"}, headers=auth())

    assert r.status_code == 404
    assert r.json() == {"ok": False, "error": {"kind": "banner_not_found", "message": "Banner not found"}}


async def test_invalid_pull_kind(client):
    r = await client.post("/gacha/summon", json={"banner_id": "standard", "pull_kind": "triple"}, headers=auth())

    assert r.status_code == 400
    assert r.json()["error"]["kind"] == "invalid_pull_kind"


async def test_summon_then_collection(client):
    r = await client.post("/gacha/summon", json={"banner_id": "standard", "pull_kind": "single"}, headers=auth())

    assert r.status_code == 200
    body = r.json()
    assert len(body["results"]) == 1
    assert body["results"][0]["pull_number"] == 1

    heroes = (await client.get("/heroes", headers=auth())).json()["heroes"]
    assert [h["hero_type_id"] for h in heroes] == [body["results"][0]["result_id"]]

    rates = (await client.get("/gacha/banners/standard/rates", headers=auth())).json()
    assert rates["guarantee_threshold"] == 90


async def test_insufficient_currency(client):
    r = await client.post("/gacha/summon", json={"banner_id": "standard", "pull_kind": "ten"}, headers=auth())

    assert r.status_code == 402
    assert r.json()["error"]["kind"] == "insufficient_currency"


async def test_team_position_out_of_range(client):
    r = await client.put("/teams/main", json={"positions": {"6": None}}, headers=auth())

    assert r.status_code == 400
    assert r.json()["error"]["kind"] == "invalid_team_position"


async def test_battle_with_empty_team(client):
    r = await client.put("/teams/main", json={"positions": {}}, headers=auth())
    assert r.status_code == 200
    assert r.json()["hero_count"] == 0

    r = await client.post("/battles", json={"team_id": "main", "stage_id": "midgard_1"}, headers=auth())

    assert r.status_code == 400
    assert r.json()["error"]["kind"] == "empty_team"


async def test_unknown_battle_is_not_found(client):
    r = await client.get("/battles/does-not-exist", headers=auth())

    assert r.status_code == 404


async def test_missions_are_assigned_on_read(client):
    r = await client.get("/missions", headers=auth())

    assert r.status_code == 200
    ids = {m["template_id"] for m in r.json()["missions"]}
    assert {"daily_battles", "daily_summon", "story_pass"} <= ids


async def test_new_player_resources_and_idle(client):
    r = await client.get("/resources", headers=auth("fresh"))
    assert r.status_code == 200
    assert (r.json()["gold"], r.json()["gems"]) == (settings.STARTING_GOLD, settings.STARTING_GEMS)

    r = await client.post("/idle/claim", headers=auth("fresh"))
    assert r.status_code == 200
    assert (r.json()["minutes"], r.json()["gold"]) == (0, 0)

    r = await client.get("/idle", headers=auth("fresh"))
    assert r.status_code == 200
    assert r.json()["minutes"] == 0
