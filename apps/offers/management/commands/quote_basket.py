"""
Management command to price a basket against an offer catalog.

Usage:
    python manage.py quote_basket basket.json --offers offers.json
    python manage.py quote_basket basket.json --per-item
    python manage.py quote_basket basket.json --manual-discount 2.50 --json
"""

import json
import logging
from pathlib import Path

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from apps.offers.catalog import StaticOfferCatalog, load_offer_catalog
from apps.offers.serializers import (
    BasketTotalSerializer,
    DiscountedPriceSerializer,
    OrderTotalSerializer,
    build_line_items,
    build_offers,
    discounted_price_rows,
)
from apps.offers.services import (
    CatalogError,
    OfferPricingError,
    apply_discounted_prices,
    calculate_discounted_prices,
    calculate_offers,
    calculate_order_total,
)

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Price a basket under the active bundle offers'

    def add_arguments(self, parser):
        parser.add_argument(
            'basket',
            help='JSON file with a list of basket lines, or {"items": [...], "offers": [...]}',
        )
        parser.add_argument(
            '--offers',
            default=settings.OFFERS_CATALOG_PATH,
            help='JSON offer catalog (defaults to OFFERS_CATALOG_PATH)',
        )
        parser.add_argument(
            '--at',
            help='ISO datetime to check offer windows against (defaults to now)',
        )
        parser.add_argument(
            '--per-item',
            action='store_true',
            help='Show the effective discounted unit price of each line',
        )
        parser.add_argument(
            '--manual-discount',
            help='Amount taken off the offer-priced order total',
        )
        parser.add_argument(
            '--total-override',
            help='Replace the order total outright',
        )
        parser.add_argument(
            '--json',
            action='store_true',
            help='Print JSON instead of a summary',
        )

    def handle(self, *args, **options):
        adjusting = (
            options['manual_discount'] is not None
            or options['total_override'] is not None
        )
        if options['per_item'] and adjusting:
            raise CommandError(
                '--per-item cannot be combined with --manual-discount or --total-override'
            )

        now = self._parse_at(options['at'])
        items_data, inline_offers = self._read_basket(options['basket'])

        try:
            items = build_line_items(items_data)
            if options['offers']:
                if inline_offers:
                    logger.warning(
                        "Ignoring %d inline offers in %s, using catalog %s",
                        len(inline_offers),
                        options['basket'],
                        options['offers'],
                    )
                    self.stderr.write(self.style.WARNING(
                        f"Ignoring offers in {options['basket']}; "
                        f"using catalog {options['offers']}"
                    ))
                catalog = load_offer_catalog(options['offers'])
            else:
                catalog = StaticOfferCatalog(build_offers(inline_offers))
        except (OfferPricingError, CatalogError) as exc:
            raise CommandError(str(exc))

        offers = catalog.get_offers()

        try:
            if options['per_item']:
                self._show_per_item(items, offers, now, options['json'])
            elif adjusting:
                self._show_order_total(items, offers, now, options)
            else:
                self._show_basket(items, offers, now, options['json'])
        except OfferPricingError as exc:
            raise CommandError(str(exc))

    def _parse_at(self, value):
        if not value:
            return timezone.now()

        at = parse_datetime(value)
        if at is None:
            raise CommandError(f'Invalid --at datetime: {value}')
        if timezone.is_naive(at):
            at = timezone.make_aware(at)
        return at

    def _read_basket(self, path):
        try:
            payload = json.loads(Path(path).read_text(encoding='utf-8'))
        except FileNotFoundError:
            raise CommandError(f'Basket file {path} not found')
        except json.JSONDecodeError as exc:
            raise CommandError(f'Basket file {path} is not valid JSON: {exc}')

        if isinstance(payload, list):
            return payload, []
        if isinstance(payload, dict):
            return payload.get('items', []), payload.get('offers', [])
        raise CommandError('Basket file must hold a list of lines or an object')

    def _money(self, amount):
        places = settings.OFFERS_PRICE_DECIMAL_PLACES
        return f'{settings.OFFERS_CURRENCY_SYMBOL}{amount:.{places}f}'

    def _show_basket(self, items, offers, now, as_json):
        basket = calculate_offers(items, offers, now)
        logger.info(
            "Quoted basket of %d lines: %d offers applied",
            len(items),
            len(basket.applied_offers),
        )

        if as_json:
            self.stdout.write(json.dumps(BasketTotalSerializer(basket).data, indent=2))
            return

        self.stdout.write(f'Subtotal:  {self._money(basket.subtotal)}')
        for applied in basket.applied_offers:
            self.stdout.write(
                f'  - {applied.offer_name} x{applied.applied_quantity}: '
                f'save {self._money(applied.discount)}'
            )
        self.stdout.write(f'Discounts: {self._money(basket.discounts)}')
        self.stdout.write(self.style.SUCCESS(f'Total:     {self._money(basket.total)}'))

    def _show_per_item(self, items, offers, now, as_json):
        prices = calculate_discounted_prices(items, offers, now)

        if as_json:
            rows = DiscountedPriceSerializer(discounted_price_rows(prices), many=True).data
            self.stdout.write(json.dumps(rows, indent=2))
            return

        for key, discounted in prices.items():
            note = f' ({discounted.offer_id})' if discounted.offer_id else ''
            self.stdout.write(f'{key}: {self._money(discounted.price)}{note}')

    def _show_order_total(self, items, offers, now, options):
        lines = apply_discounted_prices(items, offers, now)
        order = calculate_order_total(
            lines,
            manual_discount=options['manual_discount'],
            total_override=options['total_override'],
        )

        if options['json']:
            self.stdout.write(json.dumps(OrderTotalSerializer(order).data, indent=2))
            return

        self.stdout.write(f'Subtotal:        {self._money(order.subtotal)}')
        self.stdout.write(f'Manual discount: {self._money(order.manual_discount)}')
        if order.overridden:
            self.stdout.write(self.style.WARNING('Total overridden'))
        self.stdout.write(self.style.SUCCESS(f'Total:           {self._money(order.total)}'))
