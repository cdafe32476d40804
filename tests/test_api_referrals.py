import pytest

from conftest import bearer


@pytest.fixture
def referrer(make_user, auth_service):
    user = make_user("referrer", "REF12345")
    return user, auth_service.create_access_token(user.id)


async def test_referral_end_to_end(client, register, referrer):
    user, token = referrer

    response = await register("newbie", referral_code="REF12345")
    assert response.status_code == 201
    new_user_id = response.json()["id"]

    referrals = await client.get("/api/referrals", headers=bearer(token))
    assert referrals.status_code == 200
    body = referrals.json()
    assert len(body) == 1
    assert body[0]["username"] == "newbie"
    assert body[0]["email"] == "newbie@example.com"
    assert body[0]["status"] == "successful"
    assert "date_referred" in body[0]

    stats = await client.get("/api/referral-stats", headers=bearer(token))
    assert stats.json() == {"successful_referrals": 1}

    rewards = await client.get("/api/rewards", headers=bearer(token))
    body = rewards.json()
    assert body["totalRewards"] == 100
    assert len(body["rewards"]) == 1
    assert body["rewards"][0]["amount"] == 100
    assert body["rewards"][0]["description"] == f"Reward for successful referral of user ID {new_user_id}"


async def test_new_reads_visible_after_registration(client, register, referrer):
    user, token = referrer

    before = await client.get("/api/rewards", headers=bearer(token))
    assert before.json()["totalRewards"] == 0
    empty = await client.get("/api/referrals", headers=bearer(token))
    assert empty.json() == []

    await register("newbie", referral_code="REF12345")

    after = await client.get("/api/rewards", headers=bearer(token))
    assert after.json()["totalRewards"] == 100
    referrals = await client.get("/api/referrals", headers=bearer(token))
    assert len(referrals.json()) == 1


async def test_reads_are_cached(client, referrer, app, mocker):
    user, token = referrer
    spy = mocker.spy(app.state.reward_ledger, "list_for_user")

    await client.get("/api/rewards", headers=bearer(token))
    await client.get("/api/rewards", headers=bearer(token))

    assert spy.call_count == 1


async def test_bad_referral_code_is_not_fatal(client, register, referrer):
    user, token = referrer

    response = await register("newbie", referral_code="DOES-NOT-EXIST")

    assert response.status_code == 201
    referrals = await client.get("/api/referrals", headers=bearer(token))
    assert referrals.json() == []


async def test_cookie_session_is_accepted(client, register):
    await register("alice")

    response = await client.get("/api/referral-stats")

    assert response.status_code == 200
    assert response.json() == {"successful_referrals": 0}


@pytest.mark.parametrize("path", ["/api/referrals", "/api/referral-stats", "/api/rewards"])
async def test_missing_token(client, path):
    client.cookies.clear()

    response = await client.get(path)

    assert response.status_code == 401
    assert response.json() == {"message": "No token provided"}


@pytest.mark.parametrize("path", ["/api/referrals", "/api/referral-stats", "/api/rewards"])
async def test_invalid_token(client, path):
    client.cookies.clear()

    response = await client.get(path, headers=bearer("not-a-jwt"))

    assert response.status_code == 401
    assert response.json() == {"message": "Invalid token"}


async def test_two_referred_users_each_credit_once(client, register, referrer):
    user, token = referrer

    await register("first", referral_code="REF12345")
    await register("second", referral_code="REF12345")

    rewards = (await client.get("/api/rewards", headers=bearer(token))).json()
    assert rewards["totalRewards"] == 200
    assert len(rewards["rewards"]) == 2

    stats = (await client.get("/api/referral-stats", headers=bearer(token))).json()
    assert stats == {"successful_referrals": 2}


async def test_duplicate_registration_has_no_ledger_effect(client, register, referrer):
    user, token = referrer

    await register("newbie", referral_code="REF12345")
    duplicate = await register("newbie", referral_code="REF12345")

    assert duplicate.status_code == 409
    rewards = (await client.get("/api/rewards", headers=bearer(token))).json()
    assert rewards["totalRewards"] == 100


async def test_overlong_referral_code_is_not_fatal(client, register, referrer, app):
    user, token = referrer

    response = await register("newbie", referral_code="X" * 64)

    assert response.status_code == 201
    assert app.state.referral_ledger.list_for_referrer(user.id) == []
