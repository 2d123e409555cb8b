#app/models/enums.py
from __future__ import annotations
from enum import Enum


class UserRole(str, Enum):
    BUYER = "BUYER"
    SELLER = "SELLER"
    ADMIN = "ADMIN"


class Negotiability(str, Enum):
    negotiable = "negotiable"
    non_negotiable = "non-negotiable"


class PostingType(str, Enum):
    STANDARD = "STANDARD"
    BIDDING = "BIDDING"


class RequirementStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class OfferStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    WITHDRAWN = "WITHDRAWN"
    COUNTERED = "COUNTERED"


class OfferAction(str, Enum):
    # history actions
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    WITHDRAWN = "WITHDRAWN"
    COUNTERED = "COUNTERED"
    # bid allocation outcomes
    WON = "WON"
    LOST = "LOST"


class OfferPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class BidStatus(str, Enum):
    ACTIVE = "ACTIVE"
    WON = "WON"
    LOST = "LOST"
    OUTBID = "OUTBID"


class EntityType(str, Enum):
    OFFER = "OFFER"
    COUNTER_OFFER = "COUNTER_OFFER"
    BID = "BID"


class NotificationType(str, Enum):
    NEW_OFFER = "NEW_OFFER"
    OFFER_ACCEPTED = "OFFER_ACCEPTED"
    OFFER_REJECTED = "OFFER_REJECTED"
    OFFER_EXPIRED = "OFFER_EXPIRED"
    OFFER_WITHDRAWN = "OFFER_WITHDRAWN"
    OFFER_UPDATED = "OFFER_UPDATED"
    COUNTER_OFFER = "COUNTER_OFFER"
    COUNTER_OFFER_ACCEPTED = "COUNTER_OFFER_ACCEPTED"
    COUNTER_OFFER_REJECTED = "COUNTER_OFFER_REJECTED"
    NEW_BID = "NEW_BID"
    BID_WON = "BID_WON"
    BID_LOST = "BID_LOST"
