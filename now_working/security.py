"""Verification of inbound webhook credentials."""

from __future__ import annotations

import hmac
import time
from typing import Callable, Protocol

from slack_sdk.signature import Clock, SignatureVerifier


class TokenVerifier(Protocol):
    def verify(self, token: str) -> bool: ...


class SharedTokenVerifier:
    """Compare a header token against a configured shared secret."""

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def verify(self, token: str) -> bool:
        if not self._secret or not token:
            return False
        return hmac.compare_digest(token.encode(), self._secret.encode())


class _FunctionClock(Clock):
    def __init__(self, func: Callable[[], float]) -> None:
        self._func = func

    def now(self) -> float:
        return self._func()


class SlackSignatureVerifier:
    """Check ``X-Slack-Signature`` headers against the app signing secret."""

    def __init__(self, signing_secret: str, clock: Callable[[], float] = time.time) -> None:
        self._secret = signing_secret
        self._verifier = SignatureVerifier(signing_secret, clock=_FunctionClock(clock))

    def signature(self, timestamp: str, body: bytes) -> str:
        return self._verifier.generate_signature(timestamp=timestamp, body=body)

    def verify_request(self, timestamp: str, body: bytes, signature: str) -> bool:
        if not self._secret or not timestamp or not signature:
            return False
        try:
            return self._verifier.is_valid(body=body, timestamp=timestamp, signature=signature)
        except ValueError:
            # non-numeric timestamp header
            return False


__all__ = ["TokenVerifier", "SharedTokenVerifier", "SlackSignatureVerifier"]
