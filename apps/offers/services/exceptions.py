"""
Domain exceptions for the offer pricing engine.

The engine never returns a degenerate result for malformed input; it
raises one of these before producing any output.

Exception Hierarchy:
    OfferPricingError (base)
    ├── InvalidOfferError
    ├── InvalidLineItemError
    └── InvalidAdjustmentError
    CatalogError

Usage:
    from apps.offers.services.exceptions import InvalidOfferError

    if quantity < 2:
        raise InvalidOfferError("Offer quantity must be at least 2")
"""


class OfferPricingError(Exception):
    """Base exception for offer pricing errors."""
    pass


class InvalidOfferError(OfferPricingError):
    """Raised when an offer fails validation on construction."""
    pass


class InvalidLineItemError(OfferPricingError):
    """Raised when a basket line has a negative quantity or price."""
    pass


class InvalidAdjustmentError(OfferPricingError):
    """Raised when a manual order discount or total override is negative."""
    pass


class CatalogError(Exception):
    """Raised when an offer catalog snapshot cannot be loaded."""
    pass
