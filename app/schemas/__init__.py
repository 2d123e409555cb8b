from app.schemas.primitives import Page, Price, Quantity, Percentage
from app.schemas.offers import (
    OfferCreate,
    OfferUpdate,
    OfferStatusUpdate,
    CounterOfferCreate,
    CounterOfferUpdate,
    CounterOfferReject,
    OfferOut,
    OfferThreadOut,
    OfferHistoryOut,
)
from app.schemas.bids import BidCreate, BidOut, AllocationRequest, AllocationOut
from app.schemas.notifications import NotificationOut
