"""
Offer Pricing Module
====================

Pure pricing of a basket under "Any N for X" bundle offers.

Functions:
    is_offer_active: Whether an offer is redeemable at a given instant.
    merge_line_items: Combine duplicate SKU lines into one.
    calculate_offers: Basket subtotal, summed offer discounts and total.
    calculate_discounted_prices: Effective per-unit price for each SKU.
    get_active_offers_for_product: Offers to advertise on a product.
    apply_discounted_prices: Basket lines re-priced at their effective price.

The engine holds no state and performs no I/O. Each call captures the
current time once and checks every offer against that same instant.

Two entry points treat overlapping offers differently:

    - ``calculate_offers`` sums the discounts of every offer that fires,
      each one drawing on the original per-SKU quantities.
    - ``calculate_discounted_prices`` keeps, per SKU, only the offer that
      gives the lowest unit price.

Example:
    Pricing a basket::

        from apps.offers.services import LineItem, Offer, calculate_offers

        items = [
            LineItem(product_id='A', name='Lemon', price=Decimal('10'), quantity=1),
            LineItem(product_id='B', name='Lime', price=Decimal('12'), quantity=1),
        ]
        offer = Offer(id='o1', name='Any 2 for 15', quantity=2,
                      price=Decimal('15'), product_ids={'A', 'B'})

        basket = calculate_offers(items, [offer])
        # basket.subtotal == 22, basket.discounts == 7, basket.total == 15
"""

import logging
from decimal import Decimal
from typing import NamedTuple, Optional

from django.utils import timezone

from .exceptions import InvalidLineItemError
from .types import (
    AppliedOffer,
    BasketTotal,
    DiscountedPrice,
    LineItem,
    Offer,
)

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


class _OfferApplication(NamedTuple):
    """Result of fitting one offer to a merged basket."""

    offer: Offer
    eligible_items: list
    multiplier: int
    units_consumed: int
    consumed: list  # (LineItem, quantity in offer), cheapest first
    original_price: Decimal
    discounted_price: Decimal

    @property
    def discount(self) -> Decimal:
        return self.original_price - self.discounted_price


def is_offer_active(offer: Offer, now) -> bool:
    """
    Check whether an offer is redeemable at ``now``.

    An offer is in effect when it is flagged active and ``now`` lies
    within its optional start/end window. Both bounds are inclusive.
    """
    if not offer.active:
        return False

    if offer.start_date and offer.start_date > now:
        return False

    if offer.end_date and offer.end_date < now:
        return False

    return True


def merge_line_items(items) -> list:
    """
    Combine lines for the same SKU, summing their quantities.

    The first line seen for a SKU supplies the name, price, flavour and
    stock of the merged line. Output follows first-occurrence order.

    Raises:
        InvalidLineItemError: If two lines for the same SKU disagree on
            unit price.
    """
    merged = {}
    for item in items:
        key = item.sku
        existing = merged.get(key)
        if existing is None:
            merged[key] = item
            continue

        if existing.price != item.price:
            raise InvalidLineItemError(
                f"Conflicting prices for {key}: {existing.price} and {item.price}"
            )
        merged[key] = LineItem(
            product_id=existing.product_id,
            name=existing.name,
            price=existing.price,
            quantity=existing.quantity + item.quantity,
            variant_id=existing.variant_id,
            flavour=existing.flavour,
            stock=existing.stock,
        )

    return list(merged.values())


def _resolve_now(now):
    if now is None:
        return timezone.now()
    return now


def _fit_offer(offer: Offer, basket_items) -> Optional[_OfferApplication]:
    """
    Work out how an offer applies to a merged basket.

    Returns None when no eligible units exist or too few to form one
    bundle. The cheapest eligible units are placed in the bundles first.
    """
    eligible_items = [
        item for item in basket_items if item.product_id in offer.product_ids
    ]
    if not eligible_items:
        return None

    total_eligible = sum(item.quantity for item in eligible_items)
    multiplier = total_eligible // offer.quantity
    if multiplier == 0:
        return None

    units_consumed = multiplier * offer.quantity

    remaining = units_consumed
    original_price = ZERO
    consumed = []
    for item in sorted(eligible_items, key=lambda i: i.price):
        quantity_to_use = min(remaining, item.quantity)
        if quantity_to_use > 0:
            original_price += item.price * quantity_to_use
            consumed.append((item, quantity_to_use))
            remaining -= quantity_to_use
        if remaining <= 0:
            break

    return _OfferApplication(
        offer=offer,
        eligible_items=eligible_items,
        multiplier=multiplier,
        units_consumed=units_consumed,
        consumed=consumed,
        original_price=original_price,
        discounted_price=offer.price * multiplier,
    )


def _beneficial_applications(basket_items, offers, now):
    """Yield each in-effect offer that lowers the basket price."""
    for offer in offers:
        if not is_offer_active(offer, now):
            logger.debug("Offer %s not in effect at %s", offer.id, now)
            continue

        application = _fit_offer(offer, basket_items)
        if application is None:
            logger.debug("Offer %s has too few eligible units", offer.id)
            continue

        if application.discount <= 0:
            logger.debug(
                "Offer %s skipped: bundle price %s is not below %s",
                offer.id,
                application.discounted_price,
                application.original_price,
            )
            continue

        yield application


def calculate_offers(items, offers, now=None) -> BasketTotal:
    """
    Price a basket under a set of bundle offers.

    Offers are not mutually exclusive. Every in-effect offer is fitted to
    the original merged quantities, and the discounts of all offers that
    fire are summed.

    Args:
        items: Basket lines; duplicate SKUs are merged first.
        offers: Offer catalog snapshot, inactive offers included.
        now: Instant to check offer windows against. Defaults to the
            current time, read once.

    Returns:
        BasketTotal with subtotal, summed discounts, total floored at
        zero, and the offers applied in catalog order.
    """
    now = _resolve_now(now)
    basket_items = merge_line_items(items)

    subtotal = sum((item.line_total for item in basket_items), ZERO)

    total_discount = ZERO
    applied_offers = []
    for application in _beneficial_applications(basket_items, offers, now):
        offer = application.offer
        total_discount += application.discount
        applied_offers.append(AppliedOffer(
            offer_id=offer.id,
            offer_name=offer.name,
            applied_quantity=application.units_consumed,
            discount=application.discount,
            items=tuple(application.eligible_items),
        ))
        logger.debug(
            "Offer %s applied x%s, saving %s",
            offer.id,
            application.multiplier,
            application.discount,
        )

    return BasketTotal(
        subtotal=subtotal,
        discounts=total_discount,
        total=max(ZERO, subtotal - total_discount),
        applied_offers=tuple(applied_offers),
        evaluated_at=now,
    )


def calculate_discounted_prices(items, offers, now=None) -> dict:
    """
    Effective unit price per SKU after bundle offers.

    For each offer that fires, the bundle price is spread evenly over
    the units in the bundle. A SKU with only part of its quantity in the
    bundle gets a quantity-weighted blend of the bundle unit price and
    its currently stored price.

    A SKU's stored price is only replaced when an offer makes it strictly
    cheaper, so overlapping offers do not compound here.

    Returns:
        dict mapping SKUKey to DiscountedPrice. SKUs with no better
        offer keep their original price and ``offer_id=None``.
    """
    now = _resolve_now(now)
    basket_items = merge_line_items(items)

    prices = {
        item.sku: DiscountedPrice(price=item.price, offer_id=None)
        for item in basket_items
    }

    for application in _beneficial_applications(basket_items, offers, now):
        unit_price = application.discounted_price / application.units_consumed

        for item, quantity_in_offer in application.consumed:
            existing = prices[item.sku]
            quantity_not_in_offer = item.quantity - quantity_in_offer

            if quantity_not_in_offer > 0:
                new_price = (
                    unit_price * quantity_in_offer
                    + existing.price * quantity_not_in_offer
                ) / item.quantity
            else:
                new_price = unit_price

            if new_price < existing.price:
                prices[item.sku] = DiscountedPrice(
                    price=new_price,
                    offer_id=application.offer.id,
                )

    return prices


def get_active_offers_for_product(product_id, offers, now=None) -> list:
    """Offers in effect at ``now`` that include ``product_id``."""
    now = _resolve_now(now)
    return [
        offer for offer in offers
        if product_id in offer.product_ids and is_offer_active(offer, now)
    ]


def apply_discounted_prices(items, offers, now=None) -> list:
    """
    Merged basket lines priced at their effective discounted unit price.

    Used when recording the price paid per line on an order, where the
    receipt shows unit prices rather than a basket-level discount.
    """
    now = _resolve_now(now)
    basket_items = merge_line_items(items)
    prices = calculate_discounted_prices(basket_items, offers, now)

    return [
        LineItem(
            product_id=item.product_id,
            name=item.name,
            price=prices[item.sku].price,
            quantity=item.quantity,
            variant_id=item.variant_id,
            flavour=item.flavour,
            stock=item.stock,
        )
        for item in basket_items
    ]
