from decimal import Decimal

import pytest
from sqlalchemy import select

from app.core.errors import (
    ExpiredError,
    ForbiddenError,
    InvalidArgumentError,
    InvalidStateError,
    LimitExceededError,
    NotFoundError,
)
from app.models.enums import OfferStatus, PostingType
from app.models.offer import Offer
from app.models.offer_history import OfferHistory
from app.models.requirement import Requirement
from app.services.counter_offers_service import CounterOfferService
from app.services.expiry_sweeper import ExpirySweeper
from app.services.offer_state_machine import OfferTransition
from app.services.offers_service import OfferService
from app.tests.factories import OWNER, SELLER, STRANGER, create_requirement


def open_thread(db, clock, *, posting_type=PostingType.STANDARD, price="100", quantity="50"):
    req = create_requirement(db, posting_type=posting_type, window_hours=24)
    offer = OfferService(clock=clock).create_offer(
        db,
        requirement_id=req.id,
        proposer_id=SELLER,
        price=Decimal(price),
        quantity=Decimal(quantity),
    )
    return req, offer


def test_counter_then_accept_settles_root_on_counter_terms(db, clock):
    svc = CounterOfferService(clock=clock)
    req, offer = open_thread(db, clock, price="100", quantity="50")

    link = svc.create_counter_offer(
        db, offer_id=offer.id, actor_id=OWNER, price=Decimal("90"), quantity=Decimal("50")
    )

    db.refresh(offer)
    assert offer.offer_status == OfferStatus.COUNTERED.value
    assert offer.counteroffer_count == 1
    assert link.is_counter_offer is True
    assert link.counteroffer_number == 1
    assert link.parent_offer_id == offer.id
    assert link.root_offer_id == offer.id
    assert link.offer_expiry_date == offer.offer_expiry_date

    accepted = svc.accept_counter_offer(db, counter_offer_id=link.id, actor_id=SELLER)

    db.refresh(offer)
    assert accepted.offer_status == OfferStatus.ACCEPTED.value
    assert offer.offer_status == OfferStatus.ACCEPTED.value
    assert offer.offered_unit_price == Decimal("90")
    assert offer.original_price == Decimal("100")
    assert offer.original_quantity == Decimal("50")
    assert db.get(Requirement, req.id).available_quantity == Decimal("950")


def test_standard_posting_only_owner_counters(db, clock):
    svc = CounterOfferService(clock=clock)
    _req, offer = open_thread(db, clock)

    with pytest.raises(ForbiddenError):
        svc.create_counter_offer(
            db, offer_id=offer.id, actor_id=SELLER, price=Decimal("95"), quantity=Decimal("50")
        )
    with pytest.raises(ForbiddenError):
        svc.create_counter_offer(
            db, offer_id=offer.id, actor_id=STRANGER, price=Decimal("95"), quantity=Decimal("50")
        )


def test_countered_offer_cannot_be_countered_again(db, clock):
    svc = CounterOfferService(clock=clock)
    _req, offer = open_thread(db, clock)
    svc.create_counter_offer(
        db, offer_id=offer.id, actor_id=OWNER, price=Decimal("90"), quantity=Decimal("50")
    )

    with pytest.raises(InvalidStateError):
        svc.create_counter_offer(
            db, offer_id=offer.id, actor_id=OWNER, price=Decimal("85"), quantity=Decimal("50")
        )


def test_counter_quantity_is_bounded_by_requirement_quantity(db, clock):
    svc = CounterOfferService(clock=clock)
    _req, offer = open_thread(db, clock)

    with pytest.raises(InvalidArgumentError):
        svc.create_counter_offer(
            db, offer_id=offer.id, actor_id=OWNER, price=Decimal("90"), quantity=Decimal("1001")
        )

    db.refresh(offer)
    assert offer.offer_status == OfferStatus.PENDING.value


def test_counter_after_window_expires_target(db, clock):
    svc = CounterOfferService(clock=clock)
    _req, offer = open_thread(db, clock)
    clock.advance(hours=24, seconds=1)

    with pytest.raises(ExpiredError):
        svc.create_counter_offer(
            db, offer_id=offer.id, actor_id=OWNER, price=Decimal("90"), quantity=Decimal("50")
        )

    db.expire_all()
    assert svc.store.get(db, offer.id).offer_status == OfferStatus.EXPIRED.value


def test_bidding_thread_is_capped_and_shares_root_expiry(db, clock):
    svc = CounterOfferService(clock=clock)
    _req, root = open_thread(db, clock, posting_type=PostingType.BIDDING)

    target_id = root.id
    actor = OWNER
    links = []
    for n in range(1, 11):
        link = svc.create_counter_offer(
            db, offer_id=target_id, actor_id=actor, price=Decimal(100 - n), quantity=Decimal("50")
        )
        assert link.counteroffer_number == n
        links.append(link)
        target_id = link.id
        actor = SELLER if actor == OWNER else OWNER

    db.refresh(root)
    assert root.counteroffer_count == 10
    assert all(l.offer_expiry_date == root.offer_expiry_date for l in links)

    with pytest.raises(LimitExceededError):
        svc.create_counter_offer(
            db, offer_id=target_id, actor_id=actor, price=Decimal("80"), quantity=Decimal("50")
        )

    db.refresh(root)
    assert root.counteroffer_count == 10


def test_bidding_author_cannot_counter_own_offer(db, clock):
    svc = CounterOfferService(clock=clock)
    _req, root = open_thread(db, clock, posting_type=PostingType.BIDDING)

    with pytest.raises(ForbiddenError):
        svc.create_counter_offer(
            db, offer_id=root.id, actor_id=SELLER, price=Decimal("90"), quantity=Decimal("50")
        )


def test_author_cannot_accept_own_counter(db, clock):
    svc = CounterOfferService(clock=clock)
    _req, offer = open_thread(db, clock)
    link = svc.create_counter_offer(
        db, offer_id=offer.id, actor_id=OWNER, price=Decimal("90"), quantity=Decimal("50")
    )

    with pytest.raises(ForbiddenError):
        svc.accept_counter_offer(db, counter_offer_id=link.id, actor_id=OWNER)
    with pytest.raises(ForbiddenError):
        svc.accept_counter_offer(db, counter_offer_id=link.id, actor_id=STRANGER)


def test_reject_counter_ends_the_negotiation(db, clock):
    svc = CounterOfferService(clock=clock)
    req, offer = open_thread(db, clock)
    link = svc.create_counter_offer(
        db, offer_id=offer.id, actor_id=OWNER, price=Decimal("90"), quantity=Decimal("50")
    )

    rejected = svc.reject_counter_offer(
        db, counter_offer_id=link.id, actor_id=SELLER, reason="too low"
    )

    db.refresh(offer)
    assert rejected.offer_status == OfferStatus.REJECTED.value
    assert offer.offer_status == OfferStatus.REJECTED.value
    assert db.get(Requirement, req.id).available_quantity == Decimal("1000")

    with pytest.raises(InvalidStateError):
        svc.accept_counter_offer(db, counter_offer_id=link.id, actor_id=SELLER)


def test_accepted_counter_is_persisted_and_survives_the_sweep(db, clock):
    svc = CounterOfferService(clock=clock)
    req, offer = open_thread(db, clock)
    link = svc.create_counter_offer(
        db, offer_id=offer.id, actor_id=OWNER, price=Decimal("90"), quantity=Decimal("50")
    )
    svc.accept_counter_offer(db, counter_offer_id=link.id, actor_id=SELLER)

    db.expire_all()
    assert db.get(Offer, link.id).offer_status == OfferStatus.ACCEPTED.value
    assert db.get(Offer, offer.id).offer_status == OfferStatus.ACCEPTED.value
    assert db.get(Requirement, req.id).available_quantity == Decimal("950")

    clock.advance(hours=48)
    assert ExpirySweeper(clock=clock).sweep(db).expired == 0
    db.expire_all()
    assert db.get(Offer, link.id).offer_status == OfferStatus.ACCEPTED.value


def test_rejected_counter_is_persisted(db, clock):
    svc = CounterOfferService(clock=clock)
    _req, offer = open_thread(db, clock)
    link = svc.create_counter_offer(
        db, offer_id=offer.id, actor_id=OWNER, price=Decimal("90"), quantity=Decimal("50")
    )
    svc.reject_counter_offer(db, counter_offer_id=link.id, actor_id=SELLER)

    db.expire_all()
    assert db.get(Offer, link.id).offer_status == OfferStatus.REJECTED.value
    assert db.get(Offer, offer.id).offer_status == OfferStatus.REJECTED.value


def test_deleting_the_root_withdraws_its_pending_counter(db, clock):
    svc = CounterOfferService(clock=clock)
    req, offer = open_thread(db, clock)
    link = svc.create_counter_offer(
        db, offer_id=offer.id, actor_id=OWNER, price=Decimal("90"), quantity=Decimal("50")
    )

    OfferService(clock=clock).delete_offer(db, offer_id=offer.id, actor_id=SELLER)

    db.expire_all()
    stored = db.get(Offer, link.id)
    assert stored.offer_status == OfferStatus.WITHDRAWN.value
    assert stored.deleted_at is not None

    actions = db.execute(
        select(OfferHistory.action).where(OfferHistory.entity_id == link.id)
    ).scalars().all()
    assert "WITHDRAWN" in actions

    _rows, total = svc.list_for_requirement(db, requirement_id=req.id, actor_id=OWNER)
    assert total == 0

    with pytest.raises(NotFoundError):
        svc.accept_counter_offer(db, counter_offer_id=link.id, actor_id=SELLER)

    clock.advance(hours=48)
    assert ExpirySweeper(clock=clock).sweep(db).expired == 0

def test_accepting_expired_counter_expires_it(db, clock):
    svc = CounterOfferService(clock=clock)
    _req, offer = open_thread(db, clock)
    link = svc.create_counter_offer(
        db, offer_id=offer.id, actor_id=OWNER, price=Decimal("90"), quantity=Decimal("50")
    )
    clock.advance(hours=25)

    with pytest.raises(ExpiredError):
        svc.accept_counter_offer(db, counter_offer_id=link.id, actor_id=SELLER)

    db.expire_all()
    assert svc.store.get(db, link.id).offer_status == OfferStatus.EXPIRED.value


def test_update_counter_is_author_only(db, clock):
    svc = CounterOfferService(clock=clock)
    _req, offer = open_thread(db, clock)
    link = svc.create_counter_offer(
        db, offer_id=offer.id, actor_id=OWNER, price=Decimal("90"), quantity=Decimal("50")
    )

    with pytest.raises(ForbiddenError):
        svc.update_counter_offer(db, counter_offer_id=link.id, actor_id=SELLER, price=Decimal("99"))

    updated = svc.update_counter_offer(
        db, counter_offer_id=link.id, actor_id=OWNER, price=Decimal("92.50")
    )
    assert updated.offered_unit_price == Decimal("92.50")
    assert updated.offer_expiry_date == offer.offer_expiry_date


def test_delete_counter_reopens_the_countered_offer(db, clock):
    svc = CounterOfferService(clock=clock)
    req, offer = open_thread(db, clock)
    link = svc.create_counter_offer(
        db, offer_id=offer.id, actor_id=OWNER, price=Decimal("90"), quantity=Decimal("50")
    )

    with pytest.raises(ForbiddenError):
        svc.delete_counter_offer(db, counter_offer_id=link.id, actor_id=SELLER)

    withdrawn = svc.delete_counter_offer(db, counter_offer_id=link.id, actor_id=OWNER)

    db.refresh(offer)
    assert withdrawn.offer_status == OfferStatus.WITHDRAWN.value
    assert withdrawn.deleted_at is not None
    assert offer.offer_status == OfferStatus.PENDING.value
    assert offer.counteroffer_count == 0

    # the reopened root can be answered directly
    accepted = OfferService(clock=clock).transition_offer(
        db, offer_id=offer.id, actor_id=OWNER, transition=OfferTransition.ACCEPT
    )
    assert accepted.offer_status == OfferStatus.ACCEPTED.value
    assert db.get(Requirement, req.id).available_quantity == Decimal("950")


def test_links_are_not_driven_through_plain_transitions(db, clock):
    svc = CounterOfferService(clock=clock)
    _req, offer = open_thread(db, clock)
    link = svc.create_counter_offer(
        db, offer_id=offer.id, actor_id=OWNER, price=Decimal("90"), quantity=Decimal("50")
    )

    with pytest.raises(InvalidStateError):
        OfferService(clock=clock).transition_offer(
            db, offer_id=link.id, actor_id=SELLER, transition=OfferTransition.ACCEPT
        )


def test_thread_lists_links_in_order(db, clock):
    svc = CounterOfferService(clock=clock)
    _req, root = open_thread(db, clock, posting_type=PostingType.BIDDING)
    first = svc.create_counter_offer(
        db, offer_id=root.id, actor_id=OWNER, price=Decimal("90"), quantity=Decimal("50")
    )
    clock.advance(minutes=5)
    second = svc.create_counter_offer(
        db, offer_id=first.id, actor_id=SELLER, price=Decimal("95"), quantity=Decimal("50")
    )

    thread_root, links = OfferService(clock=clock).get_thread(db, offer_id=second.id, actor_id=OWNER)

    assert thread_root.id == root.id
    assert [l.id for l in links] == [first.id, second.id]
    assert [l.offer_status for l in links] == [OfferStatus.COUNTERED.value, OfferStatus.PENDING.value]
    assert links[1].offer_expiry_date == root.offer_expiry_date
