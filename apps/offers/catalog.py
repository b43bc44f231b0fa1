"""
Offer catalog snapshots.

The pricing engine never reads offers itself. Callers hand it a
read-only snapshot of the catalog, taken once per request, from any
source that satisfies ``OfferCatalog``.
"""

import json
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from .serializers import build_offers
from .services import CatalogError, InvalidOfferError

logger = logging.getLogger(__name__)


@runtime_checkable
class OfferCatalog(Protocol):
    """Source of offers for the pricing engine."""

    def get_offers(self) -> list:
        ...


class StaticOfferCatalog:
    """An in-memory, immutable offer snapshot."""

    def __init__(self, offers=()):
        self._offers = tuple(offers)

    def get_offers(self) -> list:
        return list(self._offers)

    def __len__(self):
        return len(self._offers)


def load_offer_catalog(path) -> StaticOfferCatalog:
    """
    Load an offer snapshot from a JSON file.

    The file holds either a list of offers or an object with an
    ``offers`` list, each offer shaped as ``OfferSerializer`` expects.

    Raises:
        CatalogError: If the file is missing, not JSON, or holds an
            invalid offer.
    """
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding='utf-8'))
    except FileNotFoundError:
        raise CatalogError(f"Offer catalog {path} not found")
    except json.JSONDecodeError as exc:
        raise CatalogError(f"Offer catalog {path} is not valid JSON: {exc}")

    if isinstance(payload, dict):
        payload = payload.get('offers', [])
    if not isinstance(payload, list):
        raise CatalogError(f"Offer catalog {path} must hold a list of offers")

    try:
        offers = build_offers(payload)
    except InvalidOfferError as exc:
        raise CatalogError(str(exc)) from exc

    logger.info("Loaded %d offers from %s", len(offers), path)
    return StaticOfferCatalog(offers)
