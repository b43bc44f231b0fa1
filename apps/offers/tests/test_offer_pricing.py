"""
Tests for basket pricing under bundle offers.

Covers:
- Offer window checks
- Merging duplicate SKU lines
- Basket totals: thresholds, cheapest-first selection, overlapping offers
- Every offer in one call is checked against the same instant
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from unittest import mock

from apps.offers.services import (
    InvalidLineItemError,
    SKUKey,
    calculate_offers,
    is_offer_active,
    merge_line_items,
)


# ============================================================================
# OFFER WINDOW TESTS
# ============================================================================

class TestIsOfferActive:
    """Test the in-effect rule."""

    def test_active_without_dates(self, any_two_for_fifteen, now):
        assert is_offer_active(any_two_for_fifteen, now) is True

    def test_inactive_flag(self, make_offer, now):
        offer = make_offer(active=False)

        assert is_offer_active(offer, now) is False

    def test_not_started(self, make_offer, now):
        offer = make_offer(start_date=now + timedelta(seconds=1))

        assert is_offer_active(offer, now) is False

    def test_ended(self, expired_offer, now):
        assert is_offer_active(expired_offer, now) is False

    def test_bounds_are_inclusive(self, make_offer, now):
        """Offer starting and ending exactly now is in effect."""
        offer = make_offer(start_date=now, end_date=now)

        assert is_offer_active(offer, now) is True

    def test_inside_window(self, make_offer, now):
        offer = make_offer(
            start_date=now - timedelta(days=7),
            end_date=now + timedelta(days=7),
        )

        assert is_offer_active(offer, now) is True


# ============================================================================
# MERGE TESTS
# ============================================================================

class TestMergeLineItems:
    """Test combining duplicate SKU lines."""

    def test_sums_quantities(self, make_item):
        merged = merge_line_items([
            make_item(quantity=1),
            make_item(quantity=3),
        ])

        assert len(merged) == 1
        assert merged[0].quantity == 4

    def test_keeps_first_seen_display_fields(self, make_item):
        merged = merge_line_items([
            make_item(name='Lemon', flavour='Sour', stock=5),
            make_item(name='Lemon (again)', flavour='Other', stock=1),
        ])

        assert merged[0].name == 'Lemon'
        assert merged[0].flavour == 'Sour'
        assert merged[0].stock == 5

    def test_variants_stay_separate(self, make_item):
        merged = merge_line_items([
            make_item(variant_id='red'),
            make_item(variant_id='blue'),
            make_item(variant_id='red', quantity=2),
        ])

        assert [item.sku for item in merged] == [
            SKUKey('A', 'red'),
            SKUKey('A', 'blue'),
        ]
        assert merged[0].quantity == 3

    def test_first_occurrence_order(self, make_item):
        merged = merge_line_items([
            make_item(product_id='B', price='12'),
            make_item(product_id='A'),
            make_item(product_id='B', price='12'),
        ])

        assert [item.product_id for item in merged] == ['B', 'A']

    def test_separator_in_ids_does_not_collide(self, make_item):
        """'A-b' with no variant and 'A' with variant 'b' are distinct SKUs."""
        merged = merge_line_items([
            make_item(product_id='A-b'),
            make_item(product_id='A', variant_id='b'),
        ])

        assert len(merged) == 2

    def test_conflicting_prices_rejected(self, make_item):
        with pytest.raises(InvalidLineItemError) as exc:
            merge_line_items([
                make_item(price='10'),
                make_item(price='11'),
            ])

        assert 'Conflicting prices' in str(exc.value)

    def test_empty_basket(self):
        assert merge_line_items([]) == []


# ============================================================================
# BASKET TOTAL TESTS
# ============================================================================

class TestCalculateOffers:
    """Test basket totals."""

    def test_no_offers_total_equals_subtotal(self, make_item, now):
        basket = calculate_offers(
            [make_item(quantity=2), make_item(product_id='B', price='12')],
            [],
            now,
        )

        assert basket.subtotal == Decimal('32')
        assert basket.total == basket.subtotal
        assert basket.discounts == Decimal('0')
        assert basket.applied_offers == ()

    def test_no_offers_same_as_only_inactive_offers(self, make_item, make_offer, expired_offer, now):
        items = [make_item(quantity=2)]

        without = calculate_offers(items, [], now)
        inactive = calculate_offers(items, [make_offer(active=False), expired_offer], now)

        assert without == inactive

    def test_empty_basket(self, any_two_for_fifteen, now):
        basket = calculate_offers([], [any_two_for_fifteen], now)

        assert basket.subtotal == Decimal('0')
        assert basket.total == Decimal('0')
        assert basket.applied_offers == ()

    def test_cheapest_first_scenario(self, make_item, any_two_for_fifteen, now):
        """Any 2 for 15 on A (10) + B (12) saves 7."""
        basket = calculate_offers(
            [make_item('A', '10'), make_item('B', '12')],
            [any_two_for_fifteen],
            now,
        )

        assert basket.subtotal == Decimal('22')
        assert basket.discounts == Decimal('7')
        assert basket.total == Decimal('15')

        applied = basket.applied_offers[0]
        assert applied.offer_id == 'o1'
        assert applied.applied_quantity == 2
        assert applied.discount == Decimal('7')

    def test_cheapest_units_fill_the_bundle(self, make_item, make_offer, now):
        """With three eligible units the two cheapest go in the bundle."""
        offer = make_offer(product_ids=('A', 'B', 'C'))
        basket = calculate_offers(
            [make_item('C', '20'), make_item('A', '10'), make_item('B', '12')],
            [offer],
            now,
        )

        assert basket.subtotal == Decimal('42')
        assert basket.discounts == Decimal('7')
        assert basket.total == Decimal('35')

    def test_partial_quantity_from_last_item(self, make_item, make_offer, now):
        """Any 3 for 20 on 2x A (5) + 2x B (9): bundle is A, A, B."""
        offer = make_offer(quantity=3, price='20')
        basket = calculate_offers(
            [make_item('B', '9', quantity=2), make_item('A', '5', quantity=2)],
            [offer],
            now,
        )

        # original for bundle = 5 + 5 + 9 = 19, not beneficial
        assert basket.applied_offers == ()

        cheaper = make_offer(quantity=3, price='15')
        basket = calculate_offers(
            [make_item('B', '9', quantity=2), make_item('A', '5', quantity=2)],
            [cheaper],
            now,
        )
        assert basket.discounts == Decimal('4')
        assert basket.applied_offers[0].applied_quantity == 3

    def test_multiple_bundles(self, make_item, any_two_for_fifteen, now):
        basket = calculate_offers(
            [make_item('A', '10', quantity=4)],
            [any_two_for_fifteen],
            now,
        )

        assert basket.discounts == Decimal('10')
        assert basket.total == Decimal('30')
        assert basket.applied_offers[0].applied_quantity == 4

    def test_leftover_units_pay_full_price(self, make_item, any_two_for_fifteen, now):
        basket = calculate_offers(
            [make_item('A', '10', quantity=3)],
            [any_two_for_fifteen],
            now,
        )

        assert basket.subtotal == Decimal('30')
        assert basket.total == Decimal('25')

    def test_threshold(self, make_item, any_two_for_fifteen, now):
        """One unit is not enough; two units trigger exactly one bundle."""
        one = calculate_offers([make_item(quantity=1)], [any_two_for_fifteen], now)
        two = calculate_offers([make_item(quantity=2)], [any_two_for_fifteen], now)

        assert one.discounts == Decimal('0')
        assert one.applied_offers == ()
        assert len(two.applied_offers) == 1
        assert two.applied_offers[0].applied_quantity == 2

    def test_non_beneficial_offer_skipped(self, make_item, make_offer, now):
        offer = make_offer(price='25')
        basket = calculate_offers([make_item(quantity=2)], [offer], now)

        assert basket.total == Decimal('20')
        assert basket.applied_offers == ()

    def test_break_even_offer_skipped(self, make_item, make_offer, now):
        offer = make_offer(price='20')
        basket = calculate_offers([make_item(quantity=2)], [offer], now)

        assert basket.applied_offers == ()

    def test_ineligible_products_ignored(self, make_item, any_two_for_fifteen, now):
        basket = calculate_offers(
            [make_item('A', '10'), make_item('C', '3')],
            [any_two_for_fifteen],
            now,
        )

        assert basket.subtotal == Decimal('13')
        assert basket.applied_offers == ()

    def test_all_variants_of_product_eligible(self, make_item, any_two_for_fifteen, now):
        basket = calculate_offers(
            [make_item(variant_id='red'), make_item(variant_id='blue')],
            [any_two_for_fifteen],
            now,
        )

        assert basket.discounts == Decimal('5')

    def test_applied_offer_lists_all_eligible_items(self, make_item, make_offer, now):
        offer = make_offer(product_ids=('A', 'B', 'C'))
        items = [make_item('A', '10'), make_item('B', '12'), make_item('C', '20')]

        basket = calculate_offers(items, [offer], now)

        assert [item.product_id for item in basket.applied_offers[0].items] == ['A', 'B', 'C']

    def test_inactive_offers_are_no_ops(self, make_item, make_offer, expired_offer, now):
        items = [make_item(quantity=2)]
        offers = [
            make_offer(offer_id='off', active=False),
            make_offer(offer_id='future', start_date=now + timedelta(days=1)),
            expired_offer,
        ]

        basket = calculate_offers(items, offers, now)

        assert basket.discounts == Decimal('0')
        assert basket.applied_offers == ()

    def test_overlapping_offers_sum(self, make_item, make_offer, now):
        """Both offers draw on the same two units and both discounts count."""
        offers = [
            make_offer('o1', price='15', product_ids=('A',)),
            make_offer('o2', price='12', product_ids=('A', 'B')),
        ]

        basket = calculate_offers([make_item(quantity=2)], offers, now)

        assert basket.discounts == Decimal('13')
        assert basket.total == Decimal('7')
        assert [a.offer_id for a in basket.applied_offers] == ['o1', 'o2']

    def test_total_never_negative(self, make_item, make_offer, now):
        offers = [
            make_offer('o1', price='0', product_ids=('A',)),
            make_offer('o2', price='0', product_ids=('A',)),
        ]

        basket = calculate_offers([make_item(quantity=2)], offers, now)

        assert basket.discounts == Decimal('40')
        assert basket.total == Decimal('0')

    def test_split_lines_match_unsplit(self, make_item, any_two_for_fifteen, now):
        split = calculate_offers(
            [make_item(quantity=1), make_item(quantity=3)],
            [any_two_for_fifteen],
            now,
        )
        unsplit = calculate_offers(
            [make_item(quantity=4)],
            [any_two_for_fifteen],
            now,
        )

        assert split == unsplit

    def test_pure(self, make_item, any_two_for_fifteen, now):
        items = [make_item('A', '10'), make_item('B', '12')]

        first = calculate_offers(items, [any_two_for_fifteen], now)
        second = calculate_offers(items, [any_two_for_fifteen], now)

        assert first == second
        assert items[0].quantity == 1

    def test_zero_quantity_line(self, make_item, any_two_for_fifteen, now):
        basket = calculate_offers(
            [make_item(quantity=0), make_item('B', '12', quantity=2)],
            [any_two_for_fifteen],
            now,
        )

        assert basket.subtotal == Decimal('24')
        assert basket.discounts == Decimal('9')


# ============================================================================
# SINGLE INSTANT TESTS
# ============================================================================

class TestEvaluationInstant:
    """All offers in one call are checked against one instant."""

    def test_now_read_once(self, make_item, make_offer, now):
        offers = [make_offer(f'o{i}') for i in range(5)]

        with mock.patch(
            'apps.offers.services.offer_pricing.timezone.now',
            return_value=now,
        ) as mocked_now:
            basket = calculate_offers([make_item(quantity=2)], offers)

        assert mocked_now.call_count == 1
        assert basket.evaluated_at == now

    def test_explicit_now_used(self, make_item, any_two_for_fifteen, now):
        with mock.patch('apps.offers.services.offer_pricing.timezone.now') as mocked_now:
            basket = calculate_offers([make_item()], [any_two_for_fifteen], now)

        mocked_now.assert_not_called()
        assert basket.evaluated_at == now
