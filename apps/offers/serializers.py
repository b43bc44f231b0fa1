from decimal import Decimal

from django.conf import settings
from rest_framework import serializers

from .services import (
    InvalidLineItemError,
    InvalidOfferError,
    LineItem,
    Offer,
)

PRICE_PLACES = settings.OFFERS_PRICE_DECIMAL_PLACES


# =============================================================================
# Input Serializers
# =============================================================================

class LineItemSerializer(serializers.Serializer):
    """
    Validate a raw basket line.

    Fields:
        product_id (str): Product identifier
        variant_id (str): Optional variant identifier
        name (str): Display name
        price (Decimal): Unit price, zero or more
        quantity (int): Units, zero or more
        flavour (str): Optional variant label
        stock (int): Optional stock level, display only
    """

    product_id = serializers.CharField(max_length=64)
    variant_id = serializers.CharField(
        max_length=64,
        required=False,
        allow_null=True,
        allow_blank=True,
        default=None,
    )
    name = serializers.CharField(max_length=200)
    price = serializers.DecimalField(
        max_digits=12,
        decimal_places=4,
        min_value=Decimal('0'),
    )
    quantity = serializers.IntegerField(min_value=0)
    flavour = serializers.CharField(
        max_length=100,
        required=False,
        allow_null=True,
        allow_blank=True,
        default=None,
    )
    stock = serializers.IntegerField(required=False, allow_null=True, default=None)

    def validate_variant_id(self, value):
        return value or None


class OfferSerializer(serializers.Serializer):
    """
    Validate a raw offer from the catalog snapshot.

    Fields:
        id (str): Offer identifier
        name (str): Display name, e.g. "Any 2 for £15"
        description (str): Optional details
        quantity (int): Bundle size, at least 2
        price (Decimal): Bundle price
        active (bool): Admin on/off switch
        start_date (datetime): Optional first instant the offer applies
        end_date (datetime): Optional last instant the offer applies
        product_ids (list[str]): Eligible products
    """

    id = serializers.CharField(max_length=64)
    name = serializers.CharField(max_length=200)
    description = serializers.CharField(
        required=False,
        allow_null=True,
        allow_blank=True,
        default=None,
    )
    quantity = serializers.IntegerField(min_value=2)
    price = serializers.DecimalField(
        max_digits=12,
        decimal_places=4,
        min_value=Decimal('0'),
    )
    active = serializers.BooleanField(default=True)
    start_date = serializers.DateTimeField(required=False, allow_null=True, default=None)
    end_date = serializers.DateTimeField(required=False, allow_null=True, default=None)
    product_ids = serializers.ListField(
        child=serializers.CharField(max_length=64),
        allow_empty=True,
    )

    def validate(self, attrs):
        """Validate offer window."""
        start_date = attrs.get('start_date')
        end_date = attrs.get('end_date')

        if start_date and end_date and start_date > end_date:
            raise serializers.ValidationError({
                'end_date': 'End date must be after start date'
            })

        return attrs


def build_line_items(data) -> list:
    """
    Validate raw basket lines and build LineItems.

    Raises:
        InvalidLineItemError: If any line fails validation.
    """
    serializer = LineItemSerializer(data=data, many=True)
    if not serializer.is_valid():
        raise InvalidLineItemError(f"Invalid basket lines: {serializer.errors}")
    return [LineItem(**attrs) for attrs in serializer.validated_data]


def build_offers(data) -> list:
    """
    Validate raw offers and build Offers.

    Raises:
        InvalidOfferError: If any offer fails validation.
    """
    serializer = OfferSerializer(data=data, many=True)
    if not serializer.is_valid():
        raise InvalidOfferError(f"Invalid offers: {serializer.errors}")
    return [
        Offer(**{**attrs, 'product_ids': frozenset(attrs['product_ids'])})
        for attrs in serializer.validated_data
    ]


# =============================================================================
# Output Serializers
# =============================================================================

class LineItemOutputSerializer(serializers.Serializer):
    """Basket line as shown on a basket or receipt."""

    sku = serializers.SerializerMethodField()
    product_id = serializers.CharField(read_only=True)
    variant_id = serializers.CharField(read_only=True, allow_null=True)
    name = serializers.CharField(read_only=True)
    flavour = serializers.CharField(read_only=True, allow_null=True)
    price = serializers.DecimalField(
        max_digits=None,
        decimal_places=PRICE_PLACES,
        read_only=True,
    )
    quantity = serializers.IntegerField(read_only=True)

    def get_sku(self, obj):
        return str(obj.sku)


class AppliedOfferSerializer(serializers.Serializer):
    """An offer that fired, with its saving."""

    offer_id = serializers.CharField(read_only=True)
    offer_name = serializers.CharField(read_only=True)
    applied_quantity = serializers.IntegerField(read_only=True)
    discount = serializers.DecimalField(
        max_digits=None,
        decimal_places=PRICE_PLACES,
        read_only=True,
    )
    items = LineItemOutputSerializer(many=True, read_only=True)


class BasketTotalSerializer(serializers.Serializer):
    """Priced basket."""

    subtotal = serializers.DecimalField(
        max_digits=None,
        decimal_places=PRICE_PLACES,
        read_only=True,
    )
    discounts = serializers.DecimalField(
        max_digits=None,
        decimal_places=PRICE_PLACES,
        read_only=True,
    )
    total = serializers.DecimalField(
        max_digits=None,
        decimal_places=PRICE_PLACES,
        read_only=True,
    )
    applied_offers = AppliedOfferSerializer(many=True, read_only=True)
    evaluated_at = serializers.DateTimeField(read_only=True)


class DiscountedPriceSerializer(serializers.Serializer):
    """
    Effective unit price of one SKU.

    Expects rows shaped like ``discounted_price_rows`` produces.
    """

    sku = serializers.CharField(read_only=True)
    product_id = serializers.CharField(read_only=True)
    variant_id = serializers.CharField(read_only=True, allow_null=True)
    price = serializers.DecimalField(
        max_digits=None,
        decimal_places=PRICE_PLACES,
        read_only=True,
    )
    offer_id = serializers.CharField(read_only=True, allow_null=True)


def discounted_price_rows(prices) -> list:
    """Flatten a SKUKey -> DiscountedPrice map into serializable rows."""
    return [
        {
            'sku': str(key),
            'product_id': key.product_id,
            'variant_id': key.variant_id,
            'price': discounted.price,
            'offer_id': discounted.offer_id,
        }
        for key, discounted in prices.items()
    ]


class OrderTotalSerializer(serializers.Serializer):
    """Order total after admin adjustments."""

    subtotal = serializers.DecimalField(
        max_digits=None,
        decimal_places=PRICE_PLACES,
        read_only=True,
    )
    manual_discount = serializers.DecimalField(
        max_digits=None,
        decimal_places=PRICE_PLACES,
        read_only=True,
    )
    total = serializers.DecimalField(
        max_digits=None,
        decimal_places=PRICE_PLACES,
        read_only=True,
    )
    overridden = serializers.BooleanField(read_only=True)
