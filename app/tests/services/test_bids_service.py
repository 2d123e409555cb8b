import pytest
from decimal import Decimal

from app.core.errors import ConflictError, ForbiddenError, InvalidArgumentError, InvalidStateError
from app.models.enums import BidStatus, PostingType
from app.services.allocation_service import BidAllocationService
from app.services.bids_service import BidService
from app.services.requirement_gateway import SqlRequirementGateway
from app.tests.factories import OWNER, SELLER, SELLER_2, create_requirement


def test_create_bid_on_bidding_requirement(db):
    req = create_requirement(db, posting_type=PostingType.BIDDING)
    bid = BidService().create_bid(
        db, requirement_id=req.id, bidder_id=SELLER, price=Decimal("9.5"), quantity=Decimal("10")
    )
    assert bid.status == BidStatus.ACTIVE.value
    assert bid.version_id == 1


def test_standard_requirement_does_not_take_bids(db):
    req = create_requirement(db, posting_type=PostingType.STANDARD)
    with pytest.raises(InvalidStateError):
        BidService().create_bid(
            db, requirement_id=req.id, bidder_id=SELLER, price=Decimal("9"), quantity=Decimal("1")
        )


def test_owner_cannot_bid(db):
    req = create_requirement(db, posting_type=PostingType.BIDDING)
    with pytest.raises(ForbiddenError):
        BidService().create_bid(
            db, requirement_id=req.id, bidder_id=OWNER, price=Decimal("9"), quantity=Decimal("1")
        )


def test_one_active_bid_per_bidder(db):
    svc = BidService()
    req = create_requirement(db, posting_type=PostingType.BIDDING)
    svc.create_bid(db, requirement_id=req.id, bidder_id=SELLER, price=Decimal("9"), quantity=Decimal("1"))

    with pytest.raises(ConflictError):
        svc.create_bid(db, requirement_id=req.id, bidder_id=SELLER, price=Decimal("8"), quantity=Decimal("1"))


@pytest.mark.parametrize("price,quantity", [("9", "0"), ("9", "1001"), ("-1", "5")])
def test_bid_terms_are_validated(db, price, quantity):
    req = create_requirement(db, posting_type=PostingType.BIDDING, quantity="1000")
    with pytest.raises(InvalidArgumentError):
        BidService().create_bid(
            db, requirement_id=req.id, bidder_id=SELLER, price=Decimal(price), quantity=Decimal(quantity)
        )


def test_no_bids_after_a_winner(db):
    svc = BidService()
    req = create_requirement(db, posting_type=PostingType.BIDDING, quantity="1000")
    bid = svc.create_bid(db, requirement_id=req.id, bidder_id=SELLER, price=Decimal("9"), quantity=Decimal("500"))

    BidAllocationService().allocate(
        db,
        requirement_id=req.id,
        actor_id=OWNER,
        allocation={bid.id: Decimal("100")},
        quantity_overrides={bid.id: Decimal("500")},
    )

    # allocation closes the requirement; reopen it to isolate the winner rule
    req.status = "OPEN"
    db.commit()

    with pytest.raises(InvalidStateError):
        svc.create_bid(db, requirement_id=req.id, bidder_id=SELLER_2, price=Decimal("9"), quantity=Decimal("1"))


def test_bidders_only_see_their_own_bids(db):
    svc = BidService()
    req = create_requirement(db, posting_type=PostingType.BIDDING)
    svc.create_bid(db, requirement_id=req.id, bidder_id=SELLER, price=Decimal("9"), quantity=Decimal("1"))
    svc.create_bid(db, requirement_id=req.id, bidder_id=SELLER_2, price=Decimal("8"), quantity=Decimal("1"))

    assert len(svc.list_bids(db, requirement_id=req.id, actor_id=OWNER)) == 2
    mine = svc.list_bids(db, requirement_id=req.id, actor_id=SELLER)
    assert [b.bidder_id for b in mine] == [SELLER]


class LockRecordingGateway(SqlRequirementGateway):
    def __init__(self):
        super().__init__()
        self.locked_reads = []

    def get_or_404(self, db, requirement_id, *, for_update=False):
        self.locked_reads.append(for_update)
        return super().get_or_404(db, requirement_id, for_update=for_update)


def test_create_bid_locks_the_requirement_row(db):
    gateway = LockRecordingGateway()
    req = create_requirement(db, posting_type=PostingType.BIDDING)

    BidService(requirements=gateway).create_bid(
        db, requirement_id=req.id, bidder_id=SELLER, price=Decimal("9"), quantity=Decimal("1")
    )

    assert gateway.locked_reads == [True]


def test_bid_after_allocation_is_refused(db):
    svc = BidService()
    req = create_requirement(db, posting_type=PostingType.BIDDING, quantity="100")
    bid = svc.create_bid(db, requirement_id=req.id, bidder_id=SELLER, price=Decimal("9"), quantity=Decimal("100"))
    BidAllocationService().allocate(
        db, requirement_id=req.id, actor_id=OWNER, allocation={bid.id: Decimal("100")}
    )

    with pytest.raises(InvalidStateError):
        svc.create_bid(
            db, requirement_id=req.id, bidder_id=SELLER_2, price=Decimal("10"), quantity=Decimal("1")
        )
