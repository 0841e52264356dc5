from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date
from .pumps import _decimal_str


class FuelPrice(db.Model):
    """
    Local mirror of the product catalogue's price history.

    A price applies from effective_from until the next row for the same
    product. Calculations look prices up as of their own date so history
    stays stable when prices change.
    """
    __tablename__ = "fuel_prices"
    __table_args__ = (
        db.UniqueConstraint("product_id", "effective_from", name="uq_fuel_prices_product_from"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    effective_from = db.Column(db.Date, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)

    def __repr__(self) -> str:
        return f"<FuelPrice product_id={self.product_id} from={self.effective_from} = {self.unit_price}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "effective_from": to_iso_date(self.effective_from),
            "unit_price": _decimal_str(self.unit_price),
        }
