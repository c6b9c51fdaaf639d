import time
from typing import Any, Callable, Dict, Optional

import requests
from fastapi import Header, HTTPException
from jose import jwt, JWTError
from jose.utils import base64url_decode
from loguru import logger

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.backends import default_backend

from nomadconnect.core.config import (
    AUTH_DEBUG,
    AUTH_JWKS_API_KEY,
    AUTH_JWKS_URL,
    AUTH_JWT_SECRET,
    AUTH_VERIFY_MODE,
)

_JWKS_TTL_SECONDS = 600

Claims = Dict[str, Any]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail)


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise _unauthorized("Missing Authorization header")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        raise _unauthorized("Invalid Authorization header format")

    token = token.strip()
    if not token:
        raise _unauthorized("Missing bearer token")
    return token


def _public_key_from_jwk(jwk: Dict[str, Any]):
    """P-256 public key from the x/y coordinates of an ES256 JWK."""
    x = int.from_bytes(base64url_decode(jwk["x"].encode()), "big")
    y = int.from_bytes(base64url_decode(jwk["y"].encode()), "big")
    return ec.EllipticCurvePublicNumbers(x, y, ec.SECP256R1()).public_key(default_backend())


class JwksKeySet:
    """Signing keys published at a JWKS endpoint, indexed by ``kid``.

    The key set is fetched lazily and kept for ``ttl`` seconds. An unknown
    ``kid`` forces one refetch, which covers key rotation between fetches.
    """

    def __init__(
        self,
        url: str,
        api_key: str = "",
        ttl: float = _JWKS_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.url = url
        self.api_key = api_key
        self.ttl = ttl
        self.clock = clock
        self._keys: Optional[Dict[str, Dict[str, Any]]] = None
        self._fetched_at = 0.0

    def _fetch(self) -> Dict[str, Dict[str, Any]]:
        if not self.url:
            raise HTTPException(status_code=500, detail="AUTH_JWKS_URL not set (required for JWKS mode)")

        headers = {"apikey": self.api_key} if self.api_key else {}
        try:
            resp = requests.get(self.url, headers=headers, timeout=10)
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error(f"[auth] JWKS fetch failed: {exc}")
            raise HTTPException(status_code=503, detail="JWKS endpoint unavailable")

        if resp.status_code != 200 or not isinstance(data, dict) or "keys" not in data:
            raise HTTPException(status_code=500, detail=f"Invalid JWKS response: HTTP {resp.status_code}")

        logger.debug(f"[auth] JWKS fetched | keys={len(data['keys'])}")
        return {k["kid"]: k for k in data["keys"] if isinstance(k, dict) and k.get("kid")}

    def _current(self, refresh: bool = False) -> Dict[str, Dict[str, Any]]:
        now = self.clock()
        if refresh or self._keys is None or now - self._fetched_at >= self.ttl:
            self._keys = self._fetch()
            self._fetched_at = now
        return self._keys

    def key_for(self, kid: str):
        jwk = self._current().get(kid)
        if jwk is None:
            jwk = self._current(refresh=True).get(kid)
        if jwk is None:
            raise _unauthorized("Public key not found for kid")
        return _public_key_from_jwk(jwk)


_KEYSET = JwksKeySet(AUTH_JWKS_URL, AUTH_JWKS_API_KEY)


def _decode(token: str, key, algorithm: str) -> Claims:
    try:
        return jwt.decode(token, key, algorithms=[algorithm], options={"verify_aud": False})
    except JWTError:
        raise _unauthorized("Invalid or expired token")


def _verify_hs256(token: str) -> Claims:
    if not AUTH_JWT_SECRET:
        raise HTTPException(status_code=500, detail="AUTH_JWT_SECRET not set")
    return _decode(token, AUTH_JWT_SECRET, "HS256")


def _verify_jwks(token: str) -> Claims:
    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        raise _unauthorized("Invalid token header")

    alg, kid = header.get("alg"), header.get("kid")
    if AUTH_DEBUG:
        logger.debug(f"[auth] header.alg={alg} header.kid={kid}")

    if not kid:
        raise _unauthorized("Token missing kid")
    if alg != "ES256":
        raise _unauthorized(f"Unsupported JWT alg: {alg}")

    return _decode(token, _KEYSET.key_for(kid), "ES256")


_VERIFIERS: Dict[str, Callable[[str], Claims]] = {
    "hs256": _verify_hs256,
    "jwks": _verify_jwks,
}


def get_current_user_id(
    authorization: Optional[str] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None),
) -> str:
    # Trusted upstream gateway already authenticated the caller
    if AUTH_VERIFY_MODE == "header":
        if not x_user_id or not x_user_id.strip():
            raise _unauthorized("Missing X-User-Id header")
        return x_user_id.strip()

    verify = _VERIFIERS.get(AUTH_VERIFY_MODE)
    if verify is None:
        raise HTTPException(status_code=500, detail=f"Invalid AUTH_VERIFY_MODE: {AUTH_VERIFY_MODE}")

    claims = verify(_bearer_token(authorization))
    sub = claims.get("sub")
    if not sub:
        raise _unauthorized("Token missing sub claim")

    if AUTH_DEBUG:
        logger.debug(f"[auth] mode={AUTH_VERIFY_MODE} user_id={sub}")
    return str(sub)
