"""
Refresh-token rotation.

A refresh attempt walks RECEIVED -> SIGNATURE_CHECKED -> MATCHED -> ROTATED and
stops at REJECTED on the first failure. Every rejection returns the same error
so callers cannot tell a reused token from a forged one. A token is redeemable
exactly once: rotation is a compare-and-set against the value read in MATCHED.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Callable, Dict, Optional

from utils.results import ErrorKind, Result
from utils.security import tokens_equal
from utils.sessions import SessionStore
from utils.tokens import INVALID_REFRESH_TOKEN, REFRESH, TokenIssuer, TokenPair

logger = logging.getLogger(__name__)


class RefreshState(Enum):
    RECEIVED = "received"
    SIGNATURE_CHECKED = "signature_checked"
    MATCHED = "matched"
    ROTATED = "rotated"
    REJECTED = "rejected"


@dataclass(frozen=True)
class RefreshOutcome:
    state: RefreshState
    principal_id: Optional[str] = None
    tokens: Optional[TokenPair] = None


class RefreshCoordinator:
    def __init__(self, issuer: TokenIssuer, store: SessionStore,
                 claims_for: Optional[Callable[[str], Dict[str, Any]]] = None):
        self.issuer = issuer
        self.store = store
        # optional lookup of extra access-token claims for a principal
        self.claims_for = claims_for

    def _reject(self, reason: str, principal_id: Optional[str] = None) -> Result[RefreshOutcome]:
        logger.warning("refresh rejected (%s) for user %s", reason, principal_id or "-")
        return Result(
            value=RefreshOutcome(RefreshState.REJECTED, principal_id),
            error=ErrorKind.AUTHENTICATION,
            message=INVALID_REFRESH_TOKEN,
        )

    def refresh(self, candidate: Optional[str]) -> Result[RefreshOutcome]:
        # RECEIVED
        if not candidate:
            return self._reject("missing token")

        checked = self.issuer.verify(candidate, REFRESH)
        if not checked.ok:
            return self._reject("signature or expiry")
        principal_id = checked.value.subject
        # SIGNATURE_CHECKED

        stored = self.store.read(principal_id)
        if not tokens_equal(candidate, stored):
            return self._reject("not the active token", principal_id)
        # MATCHED

        extra = self.claims_for(principal_id) if self.claims_for else None
        tokens = self.issuer.issue(principal_id, extra_claims=extra)
        if not self.store.compare_and_set(principal_id, stored, tokens.refresh_token):
            return self._reject("lost rotation race", principal_id)

        logger.info("refresh token rotated for user %s", principal_id)
        return Result.success(RefreshOutcome(RefreshState.ROTATED, principal_id, tokens))
