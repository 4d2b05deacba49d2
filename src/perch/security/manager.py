"""Security manager component: signed, double-submit CSRF tokens.

A token is a random value signed with ``itsdangerous``. The same token is
sent to the client twice, once as a cookie and once embedded in forms (or
echoed in a header by scripts). A request passes validation when the
submitted token equals the cookie token and the signature is valid.

When no ``secret_key`` is configured, a key is generated on first use and
kept in the application's global state so it survives across runs.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any

from itsdangerous import BadSignature, URLSafeTimedSerializer

from perch.component import Component
from perch.errors import AuthError, ConfigurationError

logger = logging.getLogger("perch.security")

SECRET_KEY_STATE = "perch.security.secret_key"


class SecurityManager(Component):
    """CSRF token generation and validation.

    Options:
        secret_key: Signing key. Generated and persisted in global state
            when empty.
        csrf_field: Form / query field carrying the token.
        csrf_header: Header carrying the token for script requests.
        csrf_cookie: Cookie holding the reference token.
        token_length: Random bytes per token (hex-encoded before signing).
        max_age: Token lifetime in seconds. ``None`` means no expiry.
    """

    secret_key: str = ""
    csrf_field: str = "_csrf_token"
    csrf_header: str = "X-CSRF-Token"
    csrf_cookie: str = "_csrf_token"
    token_length: int = 32
    max_age: int | None = None

    _serializer: URLSafeTimedSerializer | None = None
    _serializer_key: str = ""

    @property
    def key(self) -> str:
        """The signing key, generating and persisting one if needed."""
        if self.secret_key:
            return self.secret_key
        if self.app is None:
            msg = "SecurityManager needs a secret_key or an owning application"
            raise ConfigurationError(msg)

        key = self.app.get_global_state(SECRET_KEY_STATE)
        if not key:
            logger.debug("Generating a new CSRF signing key")
            key = secrets.token_hex(32)
            self.app.set_global_state(SECRET_KEY_STATE, key)
        self.secret_key = key
        return key

    @property
    def serializer(self) -> URLSafeTimedSerializer:
        key = self.key
        if self._serializer is None or self._serializer_key != key:
            self._serializer = URLSafeTimedSerializer(key, salt="perch.csrf")
            self._serializer_key = key
        return self._serializer

    def generate_csrf_token(self) -> str:
        """Return a freshly signed random token."""
        return self.serializer.dumps(secrets.token_hex(self.token_length))

    def submitted_token(self, request: Any) -> str | None:
        """The token sent with *request*: header first, then form, then query."""
        token = request.headers.get(self.csrf_header)
        if token is None:
            token = request.form.get(self.csrf_field)
        if token is None:
            token = request.query.get(self.csrf_field)
        return token

    def validate_csrf(self, request: Any) -> None:
        """Check *request*'s token against its CSRF cookie.

        Raises:
            AuthError: If either token is missing, they differ, or the
                signature is invalid or expired.
        """
        submitted = self.submitted_token(request)
        expected = request.cookies.get(self.csrf_cookie)
        if not submitted or not expected:
            raise AuthError("CSRF token missing")

        if not secrets.compare_digest(str(submitted), expected):
            raise AuthError("CSRF token invalid")

        try:
            self.serializer.loads(expected, max_age=self.max_age)
        except BadSignature as exc:
            raise AuthError("CSRF token invalid") from exc
