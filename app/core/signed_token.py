"""
Compact HMAC-SHA256 signed tokens (header.payload.signature, base64url, no padding).

Issuing and verifying are pure functions of their arguments plus the wall
clock; there is no token store. Callers that need single use must record
the token themselves.
"""

import base64
import binascii
import hashlib
import hmac
import json
import math
import re
import time
from enum import Enum
from typing import Any, Dict, Mapping, Optional

ALGORITHM = "HS256"
HEADER = {"alg": ALGORITHM, "typ": "JWT"}
RESERVED_CLAIMS = ("sub", "exp")
MAX_TOKEN_LENGTH = 4096

_SEGMENT_RE = re.compile(r"[A-Za-z0-9_-]+")


class TokenRejection(str, Enum):
    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    EXPIRED = "expired"
    SUBJECT_MISMATCH = "subject_mismatch"


class TokenError(Exception):
    """Base class for every token rejection. `kind` says which check failed."""

    kind: TokenRejection

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MalformedTokenError(TokenError):
    kind = TokenRejection.MALFORMED


class BadSignatureError(TokenError):
    kind = TokenRejection.BAD_SIGNATURE


class ExpiredTokenError(TokenError):
    kind = TokenRejection.EXPIRED


class SubjectMismatchError(TokenError):
    kind = TokenRejection.SUBJECT_MISMATCH


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64url_decode(segment: str) -> bytes:
    """Decode an unpadded base64url segment, rejecting non-canonical input."""
    if not _SEGMENT_RE.fullmatch(segment):
        raise MalformedTokenError("Segment is not base64url")
    try:
        raw = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
    except (binascii.Error, ValueError) as e:
        raise MalformedTokenError("Segment is not base64url") from e
    # Unused trailing bits must be zero, otherwise two strings map to one value
    if b64url_encode(raw) != segment:
        raise MalformedTokenError("Segment is not canonical base64url")
    return raw


def _canonical_json(value: Mapping[str, Any]) -> bytes:
    return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=True).encode("ascii")


def _sign(signing_input: bytes, secret: bytes) -> bytes:
    return hmac.new(secret, signing_input, hashlib.sha256).digest()


def _check_secret(secret: bytes) -> None:
    if not isinstance(secret, (bytes, bytearray)):
        raise TypeError("secret must be bytes")
    if not secret:
        raise ValueError("secret must not be empty")


def issue(
    subject: str,
    claims: Mapping[str, Any],
    ttl_seconds: int,
    secret: bytes,
    *,
    now: Optional[int] = None,
) -> str:
    """
    Sign `claims` for `subject`, valid for `ttl_seconds` from now.

    `sub` and `exp` are set here and must not be present in `claims`.
    Invalid arguments raise ValueError/TypeError straight away.
    """
    if not isinstance(subject, str) or not subject:
        raise ValueError("subject must be a non-empty string")
    if not isinstance(claims, Mapping):
        raise TypeError("claims must be a mapping")
    reserved = [name for name in RESERVED_CLAIMS if name in claims]
    if reserved:
        raise ValueError(f"claims must not define reserved fields: {', '.join(reserved)}")
    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, int) or ttl_seconds <= 0:
        raise ValueError("ttl_seconds must be a positive integer")
    _check_secret(secret)

    issued_at = int(time.time()) if now is None else int(now)
    payload = dict(claims)
    payload["sub"] = subject
    payload["exp"] = issued_at + ttl_seconds

    header_b64 = b64url_encode(_canonical_json(HEADER))
    payload_b64 = b64url_encode(_canonical_json(payload))
    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    signature_b64 = b64url_encode(_sign(signing_input, bytes(secret)))
    return f"{header_b64}.{payload_b64}.{signature_b64}"


def _load_object(raw: bytes, what: str) -> Dict[str, Any]:
    try:
        value = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedTokenError(f"Token {what} is not valid JSON") from e
    if not isinstance(value, dict):
        raise MalformedTokenError(f"Token {what} is not a JSON object")
    return value


def verify(
    token: str,
    secret: bytes,
    *,
    now: Optional[float] = None,
    max_length: int = MAX_TOKEN_LENGTH,
) -> Dict[str, Any]:
    """
    Check structure, signature and expiry of `token` and return its claims.

    Raises MalformedTokenError, BadSignatureError or ExpiredTokenError.
    The signature is checked before anything in the payload is read.
    """
    _check_secret(secret)

    if not isinstance(token, str) or not token:
        raise MalformedTokenError("Token must be a non-empty string")
    if len(token) > max_length:
        raise MalformedTokenError("Token is too long")
    parts = token.split(".")
    if len(parts) != 3 or not all(parts):
        raise MalformedTokenError("Token must have three segments")
    header_b64, payload_b64, signature_b64 = parts
    header_raw = b64url_decode(header_b64)
    payload_raw = b64url_decode(payload_b64)
    signature = b64url_decode(signature_b64)

    expected = _sign(f"{header_b64}.{payload_b64}".encode("ascii"), bytes(secret))
    if not hmac.compare_digest(expected, signature):
        raise BadSignatureError("Token signature does not match")

    header = _load_object(header_raw, "header")
    if header.get("alg") != ALGORITHM:
        raise MalformedTokenError("Unsupported token algorithm")
    claims = _load_object(payload_raw, "payload")

    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        raise ExpiredTokenError("Token has no expiry")
    # ints compare exactly against the clock; only floats can be nan/inf
    if isinstance(exp, float) and not math.isfinite(exp):
        raise ExpiredTokenError("Token has no expiry")
    current = time.time() if now is None else now
    if exp <= current:
        raise ExpiredTokenError("Token has expired")

    return claims


def require_subject(claims: Mapping[str, Any], subject: str) -> None:
    """Raise SubjectMismatchError unless the token was minted for `subject`."""
    sub = claims.get("sub")
    if not isinstance(sub, str) or not subject or not hmac.compare_digest(sub.encode(), subject.encode()):
        raise SubjectMismatchError("Token subject does not match the authenticated user")


def fingerprint(token: str) -> str:
    """Short, non-reversible id of a token that is safe to log."""
    return hashlib.sha256(token.encode("utf-8", "replace")).hexdigest()[:12]
