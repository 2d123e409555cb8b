from decimal import Decimal

from sqlalchemy import select

from app.models.enums import OfferAction, OfferStatus
from app.models.offer_history import OfferHistory
from app.models.offer_notification import OfferNotification
from app.services.counter_offers_service import CounterOfferService
from app.services.events_service import SYSTEM_ACTOR
from app.services.expiry_sweeper import ExpirySweeper
from app.services.offer_state_machine import OfferTransition
from app.services.offers_service import OfferService
from app.tests.factories import OWNER, SELLER, SELLER_2, create_requirement


def new_offer(db, clock, req, proposer=SELLER):
    return OfferService(clock=clock).create_offer(
        db, requirement_id=req.id, proposer_id=proposer, price=Decimal("100"), quantity=Decimal("10")
    )


def status_of(db, offer_id):
    db.expire_all()
    return OfferService().store.get(db, offer_id).offer_status


def test_sweep_expires_only_past_deadline(db, clock):
    req = create_requirement(db, window_hours=24)
    stale = new_offer(db, clock, req)

    clock.advance(hours=12)
    fresh = new_offer(db, clock, req, proposer=SELLER_2)

    clock.advance(hours=12, seconds=1)
    result = ExpirySweeper(clock=clock).sweep(db)

    assert (result.scanned, result.expired, result.failed) == (1, 1, 0)
    assert status_of(db, stale.id) == OfferStatus.EXPIRED.value
    assert status_of(db, fresh.id) == OfferStatus.PENDING.value

    history = db.execute(
        select(OfferHistory).where(OfferHistory.entity_id == stale.id, OfferHistory.action == OfferAction.EXPIRED.value)
    ).scalars().one()
    assert history.performed_by == SYSTEM_ACTOR


def test_sweep_is_idempotent(db, clock):
    req = create_requirement(db, window_hours=1)
    offer = new_offer(db, clock, req)
    clock.advance(hours=2)

    sweeper = ExpirySweeper(clock=clock)
    first = sweeper.sweep(db)
    version_after_first = OfferService().store.get(db, offer.id).version_id
    second = sweeper.sweep(db)

    assert first.expired == 1
    assert (second.scanned, second.expired) == (0, 0)
    assert OfferService().store.get(db, offer.id).version_id == version_after_first


def test_sweep_leaves_deadline_instant_alone(db, clock):
    req = create_requirement(db, window_hours=1)
    offer = new_offer(db, clock, req)
    clock.advance(hours=1)

    assert ExpirySweeper(clock=clock).sweep(db).expired == 0
    assert status_of(db, offer.id) == OfferStatus.PENDING.value


def test_sweep_skips_non_negotiable_deleted_and_resolved(db, clock):
    fixed = create_requirement(db, negotiable=False)
    fixed_offer = new_offer(db, clock, fixed)

    req = create_requirement(db, window_hours=1)
    deleted = new_offer(db, clock, req)
    OfferService(clock=clock).delete_offer(db, offer_id=deleted.id, actor_id=SELLER)

    other = create_requirement(db, window_hours=1)
    rejected = new_offer(db, clock, other)
    OfferService(clock=clock).transition_offer(
        db, offer_id=rejected.id, actor_id=OWNER, transition=OfferTransition.REJECT
    )

    clock.advance(days=3)
    result = ExpirySweeper(clock=clock).sweep(db)

    assert result.expired == 0
    assert status_of(db, fixed_offer.id) == OfferStatus.PENDING.value
    assert status_of(db, rejected.id) == OfferStatus.REJECTED.value


def test_sweep_expires_pending_counter_links_without_notifying(db, clock):
    req = create_requirement(db, window_hours=24)
    offer = new_offer(db, clock, req)
    link = CounterOfferService(clock=clock).create_counter_offer(
        db, offer_id=offer.id, actor_id=OWNER, price=Decimal("95"), quantity=Decimal("10")
    )
    notifications_before = len(db.execute(select(OfferNotification)).scalars().all())

    clock.advance(hours=25)
    result = ExpirySweeper(clock=clock).sweep(db)

    assert result.expired == 1
    assert status_of(db, link.id) == OfferStatus.EXPIRED.value
    assert status_of(db, offer.id) == OfferStatus.COUNTERED.value
    assert len(db.execute(select(OfferNotification)).scalars().all()) == notifications_before
