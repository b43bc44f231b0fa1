import json
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from apps.offers.services import LineItem, Offer


@pytest.fixture
def now():
    """A fixed instant to evaluate offers against."""
    return datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_item():
    """Factory for basket lines with sensible defaults."""
    def _make_item(product_id='A', price='10', quantity=1, variant_id=None, **kwargs):
        return LineItem(
            product_id=product_id,
            name=kwargs.pop('name', f'Product {product_id}'),
            price=Decimal(price),
            quantity=quantity,
            variant_id=variant_id,
            **kwargs,
        )
    return _make_item


@pytest.fixture
def make_offer():
    """Factory for bundle offers with sensible defaults."""
    def _make_offer(offer_id='o1', quantity=2, price='15', product_ids=('A', 'B'), **kwargs):
        return Offer(
            id=offer_id,
            name=kwargs.pop('name', f'Any {quantity} for {price}'),
            quantity=quantity,
            price=Decimal(price),
            product_ids=frozenset(product_ids),
            **kwargs,
        )
    return _make_offer


@pytest.fixture
def any_two_for_fifteen(make_offer):
    """Any 2 of products A or B for 15."""
    return make_offer()


@pytest.fixture
def expired_offer(make_offer, now):
    """An offer that ended yesterday."""
    return make_offer(
        offer_id='expired',
        end_date=now - timedelta(days=1),
    )


@pytest.fixture
def offer_payload():
    """Raw offer as it appears in a catalog snapshot."""
    return {
        'id': 'o1',
        'name': 'Any 2 for £15',
        'description': 'Mix and match lemons and limes',
        'quantity': 2,
        'price': '15.00',
        'active': True,
        'start_date': '2026-01-01T00:00:00Z',
        'end_date': '2026-12-31T23:59:59Z',
        'product_ids': ['A', 'B'],
    }


@pytest.fixture
def basket_payload():
    """Raw basket lines as sent by the storefront."""
    return [
        {'product_id': 'A', 'name': 'Lemon', 'price': '10.00', 'quantity': 1},
        {'product_id': 'B', 'name': 'Lime', 'price': '12.00', 'quantity': 1,
         'variant_id': 'v1', 'flavour': 'Zesty'},
    ]


@pytest.fixture
def basket_file(tmp_path, basket_payload, offer_payload):
    """Basket JSON file carrying its own offers."""
    path = tmp_path / 'basket.json'
    path.write_text(json.dumps({
        'items': basket_payload,
        'offers': [offer_payload],
    }))
    return path
