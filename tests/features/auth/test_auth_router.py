"""HTTP tests for the auth endpoints: envelope, cookies and bearer auth."""

from datetime import timedelta

from fastapi import status

from src.config.settings import settings
from src.features.account.models import AccountStatus

AUTH = f"{settings.api_prefix}/auth"
BROWSER_UA = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0 Safari/537.36"
MOBILE_UA = "Dart/3.4 (dart:io)"
DEFAULT_PASSWORD = "P@ssw0rd1"


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestRegisterEndpoint:
    async def test_register_and_verify(self, client, email_sender):
        response = await client.post(
            f"{AUTH}/register",
            json={"email": "ada@example.com", "password": DEFAULT_PASSWORD, "firstName": "Ada", "lastName": "L"},
        )
        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["succeeded"] is True
        assert body["errors"] == []
        assert body["data"]["id"].startswith("usr_")
        assert "errorCode" not in body

        code = email_sender.verifications[0][2]
        response = await client.post(
            f"{AUTH}/verify-email",
            json={"email": "ada@example.com", "code": code},
            headers={"User-Agent": MOBILE_UA},
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["accessToken"]
        assert data["refreshToken"]
        assert data["user"]["emailConfirmed"] is True

    async def test_weak_password_is_a_validation_error(self, client):
        response = await client.post(
            f"{AUTH}/register",
            json={"email": "ada@example.com", "password": "password", "firstName": "Ada", "lastName": "L"},
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        body = response.json()
        assert body["succeeded"] is False
        assert body["errorCode"] == "VALIDATION_ERROR"
        assert any(error.startswith("password:") for error in body["errors"])

    async def test_invalid_email(self, client):
        response = await client.post(
            f"{AUTH}/register",
            json={"email": "not-an-email", "password": DEFAULT_PASSWORD, "firstName": "Ada", "lastName": "L"},
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    async def test_duplicate_email_is_bad_request(self, client, make_account):
        await make_account(email="ada@example.com")
        response = await client.post(
            f"{AUTH}/register",
            json={"email": "ada@example.com", "password": DEFAULT_PASSWORD, "firstName": "Ada", "lastName": "L"},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errorCode"] == "REGISTRATION_FAILED"

    async def test_malformed_code(self, client):
        response = await client.post(f"{AUTH}/verify-email", json={"email": "ada@example.com", "code": "12ab56"})
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestLoginEndpoint:
    async def test_native_client_gets_refresh_token_in_body(self, client, make_account):
        account = await make_account()
        response = await client.post(
            f"{AUTH}/login",
            json={"email": account.email, "password": DEFAULT_PASSWORD},
            headers={"User-Agent": "okhttp/4.12.0"},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["refreshToken"]
        assert data["expiresAt"]
        assert data["user"]["id"] == account.external_id
        assert settings.refresh_cookie_name not in response.cookies

    async def test_browser_gets_refresh_token_in_cookie(self, client, make_account):
        account = await make_account()
        response = await client.post(
            f"{AUTH}/login",
            json={"email": account.email, "password": DEFAULT_PASSWORD},
            headers={"User-Agent": BROWSER_UA},
        )

        assert response.status_code == status.HTTP_200_OK
        assert "refreshToken" not in response.json()["data"]
        cookie_header = response.headers["set-cookie"]
        assert f"{settings.refresh_cookie_name}=" in cookie_header
        assert "HttpOnly" in cookie_header
        assert "Secure" in cookie_header
        assert "SameSite=strict" in cookie_header
        assert f"Path={AUTH}" in cookie_header

    async def test_bad_credentials(self, client, make_account):
        account = await make_account()
        response = await client.post(f"{AUTH}/login", json={"email": account.email, "password": "Wr0ng!pass"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body == {
            "succeeded": False,
            "errors": ["Invalid email or password."],
            "errorCode": "INVALID_CREDENTIALS",
        }


class TestRefreshTokenEndpoint:
    async def test_body_rotation(self, client, make_account):
        account = await make_account()
        login = await client.post(f"{AUTH}/login", json={"email": account.email, "password": DEFAULT_PASSWORD})
        old_token = login.json()["data"]["refreshToken"]

        response = await client.post(f"{AUTH}/refresh-token", json={"refreshToken": old_token})
        assert response.status_code == status.HTTP_200_OK
        new_token = response.json()["data"]["refreshToken"]
        assert new_token != old_token

        reused = await client.post(f"{AUTH}/refresh-token", json={"refreshToken": old_token})
        assert reused.status_code == status.HTTP_400_BAD_REQUEST
        assert reused.json()["errorCode"] == "REFRESH_TOKEN_EXPIRED"

    async def test_cookie_rotation(self, client, make_account):
        account = await make_account()
        await client.post(
            f"{AUTH}/login",
            json={"email": account.email, "password": DEFAULT_PASSWORD},
            headers={"User-Agent": BROWSER_UA},
        )
        first_cookie = client.cookies.get(settings.refresh_cookie_name)
        assert first_cookie

        response = await client.post(f"{AUTH}/refresh-token", headers={"User-Agent": BROWSER_UA})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert "refreshToken" not in data
        assert data["accessToken"]
        assert client.cookies.get(settings.refresh_cookie_name) != first_cookie

    async def test_missing_token(self, client):
        response = await client.post(f"{AUTH}/refresh-token", json={})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errorCode"] == "INVALID_TOKEN"

    async def test_unknown_token(self, client):
        response = await client.post(f"{AUTH}/refresh-token", json={"refreshToken": "nope"})
        assert response.json()["errorCode"] == "INVALID_REFRESH_TOKEN"


class TestLogoutEndpoints:
    async def test_logout_clears_cookie_and_revokes(self, client, make_account):
        account = await make_account()
        await client.post(
            f"{AUTH}/login",
            json={"email": account.email, "password": DEFAULT_PASSWORD},
            headers={"User-Agent": BROWSER_UA},
        )
        token = client.cookies.get(settings.refresh_cookie_name)

        response = await client.post(f"{AUTH}/logout")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["succeeded"] is True
        assert client.cookies.get(settings.refresh_cookie_name) is None

        reused = await client.post(f"{AUTH}/refresh-token", json={"refreshToken": token})
        assert reused.json()["errorCode"] == "REFRESH_TOKEN_EXPIRED"

    async def test_logout_without_token_succeeds(self, client):
        response = await client.post(f"{AUTH}/logout")
        assert response.status_code == status.HTTP_200_OK

    async def test_logout_all_requires_bearer(self, client):
        response = await client.post(f"{AUTH}/logout-all")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["errorCode"] == "UNAUTHORIZED"

    async def test_logout_all_makes_access_tokens_stale(self, client, make_account):
        account = await make_account()
        login = await client.post(f"{AUTH}/login", json={"email": account.email, "password": DEFAULT_PASSWORD})
        data = login.json()["data"]
        access_token = data["accessToken"]

        response = await client.post(f"{AUTH}/logout-all", headers=bearer(access_token))
        assert response.status_code == status.HTTP_200_OK

        me = await client.get(f"{AUTH}/me", headers=bearer(access_token))
        assert me.status_code == status.HTTP_401_UNAUTHORIZED
        assert me.json()["errorCode"] == "INVALID_TOKEN"

        refreshed = await client.post(f"{AUTH}/refresh-token", json={"refreshToken": data["refreshToken"]})
        assert refreshed.json()["errorCode"] == "REFRESH_TOKEN_EXPIRED"


class TestMeEndpoint:
    async def test_returns_projection(self, client, make_account, access_token_for):
        account = await make_account(first_name="Ada", last_name="Lovelace")
        response = await client.get(f"{AUTH}/me", headers=bearer(access_token_for(account)))

        assert response.status_code == status.HTTP_200_OK
        user = response.json()["data"]
        assert user["id"] == account.external_id
        assert user["fullName"] == "Ada Lovelace"
        assert "uid" not in user

    async def test_expired_token(self, client, make_account, access_token_for, clock):
        account = await make_account()
        token = access_token_for(account)
        clock.advance(timedelta(minutes=60))

        response = await client.get(f"{AUTH}/me", headers=bearer(token))
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_garbage_token(self, client):
        response = await client.get(f"{AUTH}/me", headers=bearer("garbage"))
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["errorCode"] == "INVALID_TOKEN"

    async def test_banned_account(self, client, make_account, access_token_for):
        account = await make_account(status=AccountStatus.BANNED)
        response = await client.get(f"{AUTH}/me", headers=bearer(access_token_for(account)))
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["errorCode"] == "ACCOUNT_INACTIVE"


class TestPasswordEndpoints:
    async def test_change_password_invalidates_old_token(self, client, make_account, access_token_for):
        account = await make_account()
        token = access_token_for(account)

        response = await client.post(
            f"{AUTH}/change-password",
            json={"currentPassword": DEFAULT_PASSWORD, "newPassword": "N3w!Passw0rd"},
            headers=bearer(token),
        )
        assert response.status_code == status.HTTP_200_OK

        me = await client.get(f"{AUTH}/me", headers=bearer(token))
        assert me.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_change_password_wrong_current(self, client, make_account, access_token_for):
        account = await make_account()
        response = await client.post(
            f"{AUTH}/change-password",
            json={"currentPassword": "Wr0ng!pass", "newPassword": "N3w!Passw0rd"},
            headers=bearer(access_token_for(account)),
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errorCode"] == "PASSWORD_CHANGE_FAILED"

    async def test_forgot_and_reset(self, client, make_account, email_sender):
        account = await make_account()

        unknown = await client.post(f"{AUTH}/forgot-password", json={"email": "ghost@example.com"})
        assert unknown.status_code == status.HTTP_200_OK

        response = await client.post(f"{AUTH}/forgot-password", json={"email": account.email})
        assert response.status_code == status.HTTP_200_OK
        code = email_sender.password_resets[0][2]

        response = await client.post(
            f"{AUTH}/reset-password",
            json={"email": account.email, "code": code, "newPassword": "N3w!Passw0rd"},
        )
        assert response.status_code == status.HTTP_200_OK

        login = await client.post(f"{AUTH}/login", json={"email": account.email, "password": "N3w!Passw0rd"})
        assert login.status_code == status.HTTP_200_OK


class TestHealth:
    async def test_root_and_health(self, client):
        assert (await client.get("/")).json()["status"] == "running"
        assert (await client.get("/health")).json() == {"status": "healthy"}

    async def test_request_id_is_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["x-request-id"] == "req-42"

    async def test_request_id_is_generated(self, client):
        response = await client.get("/health")
        assert len(response.headers["x-request-id"]) == 32
