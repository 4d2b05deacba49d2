"""Tests for perch.security: signed double-submit CSRF tokens."""

import time

import pytest
from itsdangerous import TimestampSigner

from perch.errors import AuthError, ConfigurationError
from perch.http.request import Request
from perch.security import SecurityManager
from perch.security.manager import SECRET_KEY_STATE


def _request(cookie: str | None = None, **kwargs) -> Request:
    cookies = {"_csrf_token": cookie} if cookie is not None else {}
    return Request(method="POST", cookies=cookies, **kwargs)


class TestTokens:
    def test_tokens_are_unique(self) -> None:
        security = SecurityManager(secret_key="k")
        assert security.generate_csrf_token() != security.generate_csrf_token()

    def test_form_token(self) -> None:
        security = SecurityManager(secret_key="k")
        token = security.generate_csrf_token()
        security.validate_csrf(_request(token, form={"_csrf_token": token}))

    def test_header_token_wins(self) -> None:
        security = SecurityManager(secret_key="k")
        token = security.generate_csrf_token()
        request = _request(token, headers={"X-CSRF-Token": token}, form={"_csrf_token": "stale"})
        assert security.submitted_token(request) == token
        security.validate_csrf(request)

    def test_query_token(self) -> None:
        security = SecurityManager(secret_key="k")
        token = security.generate_csrf_token()
        security.validate_csrf(_request(token, query={"_csrf_token": token}))

    def test_custom_field(self) -> None:
        security = SecurityManager(secret_key="k", csrf_field="csrf", csrf_cookie="csrf")
        token = security.generate_csrf_token()
        security.validate_csrf(Request(cookies={"csrf": token}, form={"csrf": token}))


class TestValidation:
    def test_missing_submitted_token(self) -> None:
        security = SecurityManager(secret_key="k")
        with pytest.raises(AuthError, match="missing") as exc_info:
            security.validate_csrf(_request(security.generate_csrf_token()))
        assert exc_info.value.status == 403

    def test_missing_cookie(self) -> None:
        security = SecurityManager(secret_key="k")
        token = security.generate_csrf_token()
        with pytest.raises(AuthError, match="missing"):
            security.validate_csrf(_request(form={"_csrf_token": token}))

    def test_mismatch(self) -> None:
        security = SecurityManager(secret_key="k")
        token = security.generate_csrf_token()
        other = security.generate_csrf_token()
        with pytest.raises(AuthError, match="invalid"):
            security.validate_csrf(_request(token, form={"_csrf_token": other}))

    def test_foreign_signature(self) -> None:
        forged = SecurityManager(secret_key="attacker").generate_csrf_token()
        security = SecurityManager(secret_key="k")
        with pytest.raises(AuthError, match="invalid"):
            security.validate_csrf(_request(forged, form={"_csrf_token": forged}))

    def test_expired(self, monkeypatch: pytest.MonkeyPatch) -> None:
        security = SecurityManager(secret_key="k", max_age=10)
        issued = int(time.time()) - 60
        monkeypatch.setattr(TimestampSigner, "get_timestamp", lambda self: issued)
        token = security.generate_csrf_token()
        monkeypatch.undo()
        with pytest.raises(AuthError, match="invalid"):
            security.validate_csrf(_request(token, form={"_csrf_token": token}))


class TestSecretKey:
    def test_generated_key_kept_in_global_state(self, make_app) -> None:
        app = make_app()
        security = app.security_manager
        key = security.key
        assert len(key) == 64
        assert app.get_global_state(SECRET_KEY_STATE) == key

    def test_key_survives_across_runs(self, make_app) -> None:
        first = make_app()
        token = first.security_manager.generate_csrf_token()
        first.end(0, terminate=False)

        second = make_app()
        second.security_manager.validate_csrf(_request(token, form={"_csrf_token": token}))
        assert second.security_manager.key == first.security_manager.key

    def test_configured_key_is_not_persisted(self, make_app) -> None:
        app = make_app({"components": {"security_manager": {"secret_key": "configured"}}})
        assert app.security_manager.key == "configured"
        assert app.get_global_state(SECRET_KEY_STATE) is None

    def test_needs_key_or_app(self) -> None:
        with pytest.raises(ConfigurationError):
            SecurityManager().generate_csrf_token()
