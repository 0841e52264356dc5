# Overview: Unit price lookup for fuel products, as of a calendar date.

"""
The product catalogue owns prices. The reconciliation engine only needs
"what did one litre of product X cost on day D", so it talks to a small
PricingService interface injected through app.extensions["pms_pricing"].
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal

from flask import current_app

from .. import repositories
from ..errors import PriceNotAvailable, ValidationError
from ..models import FuelPrice
from ..validation import MONEY_QUANT, parse_date, parse_decimal, parse_id

EXTENSION_KEY = "pms_pricing"


class PricingService:
    """Interface: return the unit price of a product as of a date, or None."""

    def get_unit_price(self, product_id: int, as_of: date) -> Decimal | None:
        raise NotImplementedError


class PriceListPricingService(PricingService):
    """Reads the local fuel_prices history (latest effective_from <= as_of)."""

    def get_unit_price(self, product_id: int, as_of: date) -> Decimal | None:
        price = repositories.prices.price_as_of(product_id, as_of)
        return Decimal(price.unit_price) if price is not None else None


class StaticPricingService(PricingService):
    """Fixed price per product, regardless of date."""

    def __init__(self, prices: dict[int, Decimal | str | float]):
        self._prices = {
            int(k): parse_decimal(v, "unit_price", minimum=Decimal("0"), quant=MONEY_QUANT)
            for k, v in prices.items()
        }

    def get_unit_price(self, product_id: int, as_of: date) -> Decimal | None:
        return self._prices.get(product_id)


def get_pricing_service() -> PricingService:
    service = current_app.extensions.get(EXTENSION_KEY)
    if service is None:
        service = PriceListPricingService()
        current_app.extensions[EXTENSION_KEY] = service
    return service


def unit_price_for(product_id: int, as_of: date) -> Decimal:
    price = get_pricing_service().get_unit_price(product_id, as_of)
    if price is None:
        raise PriceNotAvailable(
            f"No unit price for product {product_id} as of {as_of.isoformat()}",
            field="pms_product_id",
            details={"product_id": product_id, "as_of": as_of.isoformat()},
        )
    return price


def set_price(product_id, effective_from, unit_price) -> FuelPrice:
    """Insert or replace the price row for (product, effective_from)."""
    product_id = parse_id(product_id, "product_id")
    effective_from = parse_date(effective_from, "effective_from")
    unit_price = parse_decimal(unit_price, "unit_price", minimum=Decimal("0"), quant=MONEY_QUANT)

    existing = repositories.prices.find(product_id, effective_from)
    if existing is not None:
        existing.unit_price = unit_price
        return existing

    price = FuelPrice(product_id=product_id, effective_from=effective_from, unit_price=unit_price)
    if not repositories.prices.add(price):
        raise ValidationError(
            f"Price for product {product_id} from {effective_from.isoformat()} was written concurrently",
            field="effective_from",
        )
    return price
