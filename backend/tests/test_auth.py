import pytest
from httpx import AsyncClient, ASGITransport
from eth_account import Account


async def _login(client, account, sign_message, role="INVESTOR"):
    r = await client.get("/api/auth/challenge", params={"wallet_address": account.address, "role": role})
    assert r.status_code == 200, r.text
    message = r.json()["message"]
    return await client.post("/api/auth/login", json={
        "wallet_address": account.address,
        "message": message,
        "signature": sign_message(account, message),
    })


@pytest.mark.asyncio
async def test_challenge_returns_200(test_app, account):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        r = await client.get("/api/auth/challenge", params={"wallet_address": account.address})
        assert r.status_code == 200
        body = r.json()
        assert set(body) == {"message", "nonce", "expires_at"}
        assert "Role: INVESTOR" in body["message"]


@pytest.mark.asyncio
async def test_challenge_invalid_address(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        r = await client.get("/api/auth/challenge", params={"wallet_address": "0x1234", "role": "INVESTOR"})
        assert r.status_code == 400
        assert r.json()["error"] == "INVALID_ADDRESS"


@pytest.mark.asyncio
async def test_challenge_unknown_role(test_app, account):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        r = await client.get("/api/auth/challenge", params={"wallet_address": account.address, "role": "ROOT"})
        assert r.status_code == 400
        assert r.json()["error"] == "UNKNOWN_ROLE"


@pytest.mark.asyncio
async def test_admin_challenge_for_unapproved_wallet(test_app, account):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        r = await client.get("/api/auth/challenge", params={"wallet_address": account.address, "role": "ADMIN"})
        assert r.status_code == 403
        assert r.json()["error"] == "ROLE_NOT_AUTHORIZED"


@pytest.mark.asyncio
async def test_login_returns_tokens(test_app, account, sign_message):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        r = await _login(client, account, sign_message)
        assert r.status_code == 200, r.text
        body = r.json()
        assert body["identity"] == {"wallet_address": account.address, "role": "INVESTOR"}
        assert body["tokens"]["token_type"] == "bearer"
        assert body["tokens"]["expires_in"] == 15 * 60
        assert body["tokens"]["access"] and body["tokens"]["refresh"]


@pytest.mark.asyncio
async def test_login_replay_is_rejected(test_app, account, sign_message):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        r = await client.get("/api/auth/challenge", params={"wallet_address": account.address})
        message = r.json()["message"]
        payload = {
            "wallet_address": account.address,
            "message": message,
            "signature": sign_message(account, message),
        }
        r = await client.post("/api/auth/login", json=payload)
        assert r.status_code == 200
        r = await client.post("/api/auth/login", json=payload)
        assert r.status_code == 401
        assert r.json()["error"] == "CHALLENGE_ALREADY_USED"


@pytest.mark.asyncio
async def test_login_invalid_signature(test_app, account):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        r = await client.get("/api/auth/challenge", params={"wallet_address": account.address})
        r = await client.post("/api/auth/login", json={
            "wallet_address": account.address,
            "message": r.json()["message"],
            "signature": "0x" + "00" * 65,
        })
        assert r.status_code == 401
        assert r.json()["error"] == "INVALID_SIGNATURE"


@pytest.mark.asyncio
async def test_login_signed_by_other_wallet(test_app, account, sign_message):
    other = Account.create()
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        r = await client.get("/api/auth/challenge", params={"wallet_address": account.address})
        message = r.json()["message"]
        r = await client.post("/api/auth/login", json={
            "wallet_address": account.address,
            "message": message,
            "signature": sign_message(other, message),
        })
        assert r.status_code == 401
        assert r.json()["error"] == "INVALID_SIGNATURE"

        r = await client.post("/api/auth/login", json={
            "wallet_address": other.address,
            "message": message,
            "signature": sign_message(other, message),
        })
        assert r.status_code == 401
        assert r.json()["error"] == "ADDRESS_MISMATCH"


@pytest.mark.asyncio
async def test_me_with_valid_token(test_app, account, sign_message):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        r = await _login(client, account, sign_message)
        token = r.json()["tokens"]["access"]

        r = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 200
        assert r.json()["wallet_address"].lower() == account.address.lower()
        assert r.json()["role"] == "INVESTOR"


@pytest.mark.asyncio
async def test_me_rejects_refresh_token(test_app, account, sign_message):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        r = await _login(client, account, sign_message)
        token = r.json()["tokens"]["refresh"]

        r = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 401
        assert r.json()["error"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_refresh_rotates_tokens(test_app, account, sign_message):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        r = await _login(client, account, sign_message)
        tokens = r.json()["tokens"]

        r = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh"]})
        assert r.status_code == 200, r.text
        assert r.json()["tokens"]["refresh"] != tokens["refresh"]

        r = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh"]})
        assert r.status_code == 401
        assert r.json()["error"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_refresh_with_access_token(test_app, account, sign_message):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        r = await _login(client, account, sign_message)
        r = await client.post("/api/auth/refresh", json={"refresh_token": r.json()["tokens"]["access"]})
        assert r.status_code == 401
        assert r.json()["error"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_logout_revokes_refresh_token(test_app, account, sign_message):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        r = await _login(client, account, sign_message)
        tokens = r.json()["tokens"]

        r = await client.post("/api/auth/logout", headers={"Authorization": f"Bearer {tokens['access']}"})
        assert r.status_code == 204

        r = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh"]})
        assert r.status_code == 401


@pytest.mark.asyncio
async def test_admin_revoke(test_app, account, admin_account, sign_message):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        r = await _login(client, account, sign_message)
        user_tokens = r.json()["tokens"]

        r = await client.post(
            "/api/auth/admin/revoke",
            json={"wallet_address": admin_account.address},
            headers={"Authorization": f"Bearer {user_tokens['access']}"},
        )
        assert r.status_code == 403
        assert r.json()["error"] == "ROLE_NOT_AUTHORIZED"

        r = await _login(client, admin_account, sign_message, role="ADMIN")
        admin_token = r.json()["tokens"]["access"]
        r = await client.post(
            "/api/auth/admin/revoke",
            json={"wallet_address": account.address.lower()},
            headers={"Authorization": f"Bearer {admin_token}"},
        )
        assert r.status_code == 200
        assert r.json() == {"wallet_address": account.address, "revoked": 1}

        r = await client.post("/api/auth/refresh", json={"refresh_token": user_tokens["refresh"]})
        assert r.status_code == 401


@pytest.mark.asyncio
async def test_health(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        r = await client.get("/health")
        assert r.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_restart_keeps_single_purge_job():
    from rwa_auth.main import app, lifespan, scheduler

    for _ in range(2):
        async with lifespan(app):
            assert [job.id for job in scheduler.get_jobs()] == ["purge_challenges"]
