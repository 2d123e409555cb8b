from __future__ import annotations

from app.core.errors import ForbiddenError
from app.models.enums import PostingType
from app.models.offer import Offer
from app.models.requirement import Requirement


def enforce_not_owner(requirement: Requirement, actor_id: str) -> None:
    """
    Owners cannot place offers or bids on their own requirement.
    """
    if requirement.owner_id == actor_id:
        raise ForbiddenError("Cannot place an offer or bid on your own requirement.")


def enforce_party(offer: Offer, actor_id: str) -> None:
    if not offer.is_party(actor_id):
        raise ForbiddenError("Only the parties of this negotiation may act on it.")


def enforce_proposer(offer: Offer, actor_id: str) -> None:
    if offer.offer_user_id != actor_id:
        raise ForbiddenError("Only the proposer may modify this offer.")


def enforce_author(offer: Offer, actor_id: str) -> None:
    if offer.author_id != actor_id:
        raise ForbiddenError("Only the author may modify this counter-offer.")


def enforce_not_author(offer: Offer, actor_id: str) -> None:
    """
    Accepting or rejecting your own proposal is a self-action.
    """
    enforce_party(offer, actor_id)
    if offer.author_id == actor_id:
        raise ForbiddenError("Cannot respond to your own proposal.")


def enforce_can_counter(requirement: Requirement, target: Offer, actor_id: str) -> None:
    """
    STANDARD postings: only the requirement owner counters.
    BIDDING postings: either party, but never the author of the offer being countered.
    """
    if requirement.posting_type != PostingType.BIDDING.value and requirement.owner_id != actor_id:
        raise ForbiddenError("Only the requirement owner may counter this offer.")

    enforce_party(target, actor_id)
    if target.author_id == actor_id:
        raise ForbiddenError("Cannot counter your own offer.")


def enforce_requirement_owner(requirement: Requirement, actor_id: str) -> None:
    if requirement.owner_id != actor_id:
        raise ForbiddenError("Only the requirement owner may perform this action.")
