"""
Value types for the offer pricing engine.

Line items and offers validate themselves on construction, so anything
that reaches the engine is already well formed. All money values are
held as ``Decimal``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import NamedTuple, Optional

from django.utils import timezone

from .exceptions import InvalidLineItemError, InvalidOfferError


def to_decimal(value, error_class, label):
    """Coerce ``value`` to ``Decimal`` or raise ``error_class``."""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise error_class(f"{label} must be a number, got {value!r}")

    if not result.is_finite():
        raise error_class(f"{label} must be finite, got {value!r}")
    return result


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _offer_instant(value, label):
    """Return ``value`` as an aware datetime, or None when unset."""
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise InvalidOfferError(f"{label} must be a datetime, got {value!r}")
    if timezone.is_naive(value):
        return timezone.make_aware(value)
    return value


class SKUKey(NamedTuple):
    """Identifies a distinct purchasable unit: a product and optional variant."""

    product_id: str
    variant_id: Optional[str] = None

    def __str__(self):
        return f"{self.product_id}-{self.variant_id or 'base'}"


@dataclass(frozen=True)
class LineItem:
    """
    A basket entry.

    Args:
        product_id: Product identifier.
        name: Display name.
        price: Unit price.
        quantity: Number of units, zero or more.
        variant_id: Optional variant (flavour, size...) of the product.
        flavour: Display label of the variant.
        stock: Stock level shown next to the line, display only.

    Raises:
        InvalidLineItemError: If quantity or price is negative, or the
            quantity is not an integer.
    """

    product_id: str
    name: str
    price: Decimal
    quantity: int
    variant_id: Optional[str] = None
    flavour: Optional[str] = None
    stock: Optional[int] = None

    def __post_init__(self):
        if not self.product_id:
            raise InvalidLineItemError("Line item needs a product_id")

        if not _is_int(self.quantity):
            raise InvalidLineItemError(
                f"Quantity for {self.name} must be an integer, got {self.quantity!r}"
            )
        if self.quantity < 0:
            raise InvalidLineItemError(
                f"Quantity for {self.name} cannot be negative ({self.quantity})"
            )

        price = to_decimal(self.price, InvalidLineItemError, f"Price for {self.name}")
        if price < 0:
            raise InvalidLineItemError(
                f"Price for {self.name} cannot be negative ({price})"
            )
        object.__setattr__(self, 'price', price)

    @property
    def sku(self) -> SKUKey:
        return SKUKey(self.product_id, self.variant_id or None)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class Offer:
    """
    An "Any N for X" bundle offer.

    Any ``quantity`` units drawn from the products in ``product_ids`` cost
    ``price`` together. Every variant of an eligible product qualifies.
    Naive start/end dates are taken to be in the current time zone.

    Raises:
        InvalidOfferError: If the bundle size is not an integer of at
            least 2, the price is negative, a start/end date is not a
            datetime, or the validity window is inverted.
    """

    id: str
    name: str
    quantity: int
    price: Decimal
    product_ids: frozenset = field(default_factory=frozenset)
    active: bool = True
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    description: Optional[str] = None

    def __post_init__(self):
        if not _is_int(self.quantity) or self.quantity < 2:
            raise InvalidOfferError(
                f"Offer {self.name} needs a bundle size of at least 2, got {self.quantity!r}"
            )

        price = to_decimal(self.price, InvalidOfferError, f"Price for offer {self.name}")
        if price < 0:
            raise InvalidOfferError(
                f"Price for offer {self.name} cannot be negative ({price})"
            )
        object.__setattr__(self, 'price', price)

        if isinstance(self.product_ids, str):
            raise InvalidOfferError(
                f"Offer {self.name} product_ids must be a collection, not a string"
            )
        object.__setattr__(self, 'product_ids', frozenset(self.product_ids))

        start_date = _offer_instant(self.start_date, f"Start date of offer {self.name}")
        end_date = _offer_instant(self.end_date, f"End date of offer {self.name}")
        object.__setattr__(self, 'start_date', start_date)
        object.__setattr__(self, 'end_date', end_date)

        if start_date and end_date and start_date > end_date:
            raise InvalidOfferError(
                f"Offer {self.name} starts after it ends"
            )


@dataclass(frozen=True)
class AppliedOffer:
    """One offer that fired on a basket."""

    offer_id: str
    offer_name: str
    applied_quantity: int
    discount: Decimal
    items: tuple = ()


@dataclass(frozen=True)
class BasketTotal:
    """Priced basket. ``total`` is never negative."""

    subtotal: Decimal
    discounts: Decimal
    total: Decimal
    applied_offers: tuple = ()
    evaluated_at: Optional[datetime] = None


@dataclass(frozen=True)
class DiscountedPrice:
    """Effective unit price of one SKU and the offer that produced it."""

    price: Decimal
    offer_id: Optional[str] = None


@dataclass(frozen=True)
class OrderTotal:
    """Order total after manual admin adjustments."""

    subtotal: Decimal
    manual_discount: Decimal
    total: Decimal
    overridden: bool = False
