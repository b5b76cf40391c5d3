"""HS256 bearer tokens identifying an account"""

import base64
import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Any, Dict

from budget_gateway.domain.exceptions import AuthError


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("ascii"))


def _b64url_encode(value: bytes) -> str:
    return base64.urlsafe_b64encode(value).decode("ascii").rstrip("=")


def _now() -> int:
    return int(datetime.now(timezone.utc).timestamp())


class TokenService:
    """
    Issues and verifies HS256 JWTs whose `sub` claim is the account id.
    """

    def __init__(self, secret: str, issuer: str = "", ttl_seconds: int = 3600, leeway_seconds: int = 0):
        self.secret = secret.encode("utf-8")
        self.issuer = issuer
        self.ttl_seconds = ttl_seconds
        self.leeway_seconds = leeway_seconds

    def _sign(self, signing_input: str) -> bytes:
        return hmac.new(self.secret, signing_input.encode("ascii"), hashlib.sha256).digest()

    def encode(self, claims: Dict[str, Any]) -> str:
        header = {"alg": "HS256", "typ": "JWT"}
        header_b64 = _b64url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
        payload_b64 = _b64url_encode(json.dumps(claims, separators=(",", ":")).encode("utf-8"))
        signature = _b64url_encode(self._sign(f"{header_b64}.{payload_b64}"))
        return f"{header_b64}.{payload_b64}.{signature}"

    def issue(self, user_id: str) -> str:
        now = _now()
        claims: Dict[str, Any] = {"sub": user_id, "iat": now, "exp": now + self.ttl_seconds}
        if self.issuer:
            claims["iss"] = self.issuer
        return self.encode(claims)

    def verify(self, token: str) -> str:
        """
        Return the account id carried by a valid token.

        Raises:
            AuthError: malformed, tampered, expired, or foreign-issuer token
        """
        parts = token.split(".")
        if len(parts) != 3:
            raise AuthError("Malformed token")
        header_b64, payload_b64, signature_b64 = parts

        try:
            header = json.loads(_b64url_decode(header_b64))
            provided_sig = _b64url_decode(signature_b64)
            payload = json.loads(_b64url_decode(payload_b64))
        except (ValueError, UnicodeDecodeError) as e:
            raise AuthError("Malformed token") from e

        if not isinstance(header, dict) or header.get("alg") != "HS256":
            raise AuthError("Unsupported algorithm")
        if not hmac.compare_digest(self._sign(f"{header_b64}.{payload_b64}"), provided_sig):
            raise AuthError("Invalid signature")
        if not isinstance(payload, dict):
            raise AuthError("Malformed token")

        exp = payload.get("exp")
        if exp is not None and _now() > int(exp) + self.leeway_seconds:
            raise AuthError("Token expired")
        if self.issuer and payload.get("iss") != self.issuer:
            raise AuthError("Invalid issuer")

        subject = payload.get("sub")
        if not subject:
            raise AuthError("Token has no subject")
        return str(subject)
