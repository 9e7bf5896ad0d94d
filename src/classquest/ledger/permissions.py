"""Capability checks.

Every service operation calls :func:`require` first with the caller, the
action it is about to perform and, where ownership matters, the entity it
acts on. The rules live in one table instead of being scattered through
the engines.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from classquest.db.models import User
from classquest.ledger.errors import NotAuthenticated, NotAuthorized

ADMIN_ROLE = "admin"


class Action(str, Enum):
    # any authenticated identity
    INITIALIZE_CHARACTER = "initialize_character"
    CREATE_EVENT = "create_event"
    PLACE_BET = "place_bet"
    CANCEL_BET = "cancel_bet"
    CREATE_CHALLENGE = "create_challenge"
    SUBMIT_PROOF = "submit_proof"
    CREATE_LOAN = "create_loan"
    # creator or admin
    CLOSE_EVENT = "close_event"
    RESOLVE_EVENT = "resolve_event"
    VIEW_CHALLENGE_SUBMISSIONS = "view_challenge_submissions"
    # borrower only / anyone but the borrower
    CANCEL_LOAN = "cancel_loan"
    REPAY_LOAN = "repay_loan"
    FUND_LOAN = "fund_loan"
    # admin only
    REVIEW_SUBMISSION = "review_submission"
    LIST_ALL_EVENTS = "list_all_events"
    LIST_ALL_CHALLENGES = "list_all_challenges"
    LIST_PENDING_SUBMISSIONS = "list_pending_submissions"
    GRANT_XP = "grant_xp"
    GRANT_ADMIN = "grant_admin"
    RUN_STIPEND = "run_stipend"


_CREATOR_OR_ADMIN = {
    Action.CLOSE_EVENT: "Only the event creator or an admin can close events",
    Action.RESOLVE_EVENT: "Only the event creator or an admin can resolve events",
    Action.VIEW_CHALLENGE_SUBMISSIONS: "Only the creator or an admin can view submissions for this challenge",
}

_ADMIN_ONLY = {
    Action.REVIEW_SUBMISSION: "Only admins can review submissions",
    Action.LIST_ALL_EVENTS: "Only admins can view all events",
    Action.LIST_ALL_CHALLENGES: "Only admins can view all challenges",
    Action.LIST_PENDING_SUBMISSIONS: "Only admins can view submissions",
    Action.GRANT_XP: "Only admins can grant XP",
    Action.GRANT_ADMIN: "Only admins can make other users admin",
    Action.RUN_STIPEND: "Only admins can pay the weekly stipend",
}


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: str = ""
    authenticated: bool = True


ALLOW = AuthorizationDecision(allowed=True)


def is_admin(identity: User) -> bool:
    return identity.role == ADMIN_ROLE


def authorize(identity: User | None, action: Action, entity: Any = None) -> AuthorizationDecision:  # noqa: ANN401
    """Decide whether ``identity`` may perform ``action`` on ``entity``."""
    if identity is None:
        return AuthorizationDecision(allowed=False, reason="Not authenticated", authenticated=False)

    if action in _ADMIN_ONLY:
        return ALLOW if is_admin(identity) else AuthorizationDecision(False, _ADMIN_ONLY[action])

    if action in _CREATOR_OR_ADMIN:
        if is_admin(identity) or entity.created_by == identity.id:
            return ALLOW
        return AuthorizationDecision(False, _CREATOR_OR_ADMIN[action])

    if action is Action.CANCEL_LOAN:
        if entity.borrower_id == identity.id:
            return ALLOW
        return AuthorizationDecision(False, "You can only cancel your own loan request")

    if action is Action.REPAY_LOAN:
        if entity.borrower_id == identity.id:
            return ALLOW
        return AuthorizationDecision(False, "You can only repay your own loan")

    if action is Action.FUND_LOAN:
        if entity.borrower_id != identity.id:
            return ALLOW
        return AuthorizationDecision(False, "You cannot fund your own loan")

    return ALLOW


def authenticated(identity: User | None) -> User:
    """Raise NotAuthenticated for an anonymous caller.

    Used before loading the entity an ownership rule needs, so an anonymous
    caller learns nothing about which ids exist.
    """
    if identity is None:
        raise NotAuthenticated()
    return identity


def require(identity: User | None, action: Action, entity: Any = None) -> User:  # noqa: ANN401
    """Raise unless ``identity`` may perform ``action``. Returns the identity."""
    if identity is None:
        raise NotAuthenticated()
    decision = authorize(identity, action, entity)
    if not decision.allowed:
        raise NotAuthorized(decision.reason)
    return identity
