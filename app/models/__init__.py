from app.models.requirement import Requirement
from app.models.offer import Offer
from app.models.bid import Bid
from app.models.offer_history import OfferHistory
from app.models.offer_notification import OfferNotification

__all__ = [
    "Requirement",
    "Offer",
    "Bid",
    "OfferHistory",
    "OfferNotification",
]
