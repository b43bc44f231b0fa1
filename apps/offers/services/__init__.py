"""Services for offer pricing."""

from .exceptions import (
    OfferPricingError,
    InvalidOfferError,
    InvalidLineItemError,
    InvalidAdjustmentError,
    CatalogError,
)
from .types import (
    SKUKey,
    LineItem,
    Offer,
    AppliedOffer,
    BasketTotal,
    DiscountedPrice,
    OrderTotal,
)
from .offer_pricing import (
    is_offer_active,
    merge_line_items,
    calculate_offers,
    calculate_discounted_prices,
    get_active_offers_for_product,
    apply_discounted_prices,
)
from .order_totals import (
    calculate_order_total,
)

__all__ = [
    # Exceptions
    'OfferPricingError',
    'InvalidOfferError',
    'InvalidLineItemError',
    'InvalidAdjustmentError',
    'CatalogError',
    # Types
    'SKUKey',
    'LineItem',
    'Offer',
    'AppliedOffer',
    'BasketTotal',
    'DiscountedPrice',
    'OrderTotal',
    # Offer Pricing
    'is_offer_active',
    'merge_line_items',
    'calculate_offers',
    'calculate_discounted_prices',
    'get_active_offers_for_product',
    'apply_discounted_prices',
    # Order Totals
    'calculate_order_total',
]
