# app/services/offer_state_machine.py
from __future__ import annotations

from enum import Enum
from typing import Dict, Tuple

from app.core.errors import InvalidStateError
from app.models.enums import OfferStatus


class OfferTransition(str, Enum):
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    WITHDRAW = "WITHDRAW"
    EXPIRE = "EXPIRE"
    COUNTER = "COUNTER"
    # thread resolution only
    REOPEN = "REOPEN"


S = OfferStatus
T = OfferTransition

# Party actions. PENDING is the only state with outgoing edges.
TRANSITIONS: Dict[Tuple[OfferStatus, OfferTransition], OfferStatus] = {
    (S.PENDING, T.ACCEPT): S.ACCEPTED,
    (S.PENDING, T.REJECT): S.REJECTED,
    (S.PENDING, T.WITHDRAW): S.WITHDRAWN,
    (S.PENDING, T.EXPIRE): S.EXPIRED,
    (S.PENDING, T.COUNTER): S.COUNTERED,
}

# Edges taken on a countered offer when its counter thread resolves.
THREAD_TRANSITIONS: Dict[Tuple[OfferStatus, OfferTransition], OfferStatus] = {
    (S.COUNTERED, T.ACCEPT): S.ACCEPTED,
    (S.COUNTERED, T.REJECT): S.REJECTED,
    (S.COUNTERED, T.REOPEN): S.PENDING,
}

TERMINAL = frozenset({S.ACCEPTED, S.REJECTED, S.EXPIRED, S.WITHDRAWN})


def next_status(current: str, transition: OfferTransition, *, thread: bool = False) -> OfferStatus:
    """
    Resolve (state, action) to the next state or raise InvalidStateError.
    `thread=True` additionally allows the thread-resolution edges.
    """
    state = OfferStatus(current)
    target = TRANSITIONS.get((state, transition))
    if target is None and thread:
        target = THREAD_TRANSITIONS.get((state, transition))
    if target is None:
        raise InvalidStateError(
            f"Cannot {transition.value.lower()} an offer in status {state.value}."
        )
    return target


def can_transition(current: str, transition: OfferTransition, *, thread: bool = False) -> bool:
    try:
        next_status(current, transition, thread=thread)
    except InvalidStateError:
        return False
    return True
