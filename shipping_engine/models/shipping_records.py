"""
Database records for shipping configuration

- ShippingConfigRecord: versioned JSON shipping document
- BoxCatalogEntry: box catalog rows, override the document's boxes when present
- CarrierAccount: EasyPost carrier accounts and the origin each ships from
"""
from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime,
    Float, JSON, Index
)

from shipping_engine.core.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class ShippingConfigRecord(Base):
    """A saved shipping document. The newest row is the active one."""
    __tablename__ = "shipping_configs"

    id = Column(Integer, primary_key=True, index=True)
    config_json = Column(JSON, nullable=False)
    note = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self):
        return f"<ShippingConfigRecord(id={self.id}, updated_at={self.updated_at})>"


class BoxCatalogEntry(Base):
    """One box in the catalog. Dimensions in inches, weight in ounces."""
    __tablename__ = "box_catalog"
    __table_args__ = (
        Index("ix_box_catalog_active", "is_active"),
    )

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(50), unique=True, nullable=False)
    name = Column(String(100), nullable=False, default="")

    length = Column(Float, nullable=False)
    width = Column(Float, nullable=False)
    height = Column(Float, nullable=False)
    box_weight_oz = Column(Float, nullable=False, default=0.0)
    unit_cost_usd = Column(Float, nullable=False, default=0.0)

    # Catalog order; ties in packing cost go to the lower value
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)

    def to_config(self) -> dict:
        return {
            "sku": self.sku,
            "name": self.name or "",
            "L": self.length,
            "W": self.width,
            "H": self.height,
            "box_weight_oz": self.box_weight_oz,
            "unit_cost_usd": self.unit_cost_usd,
        }

    def __repr__(self):
        return f"<BoxCatalogEntry(sku={self.sku}, {self.length}x{self.width}x{self.height})>"


class CarrierAccount(Base):
    """
    An EasyPost carrier account.

    origin names an entry of the document's shipping.origins, or "default"
    for shipping.ship_from.
    """
    __tablename__ = "carrier_accounts"
    __table_args__ = (
        Index("ix_carrier_accounts_active", "is_active"),
    )

    id = Column(Integer, primary_key=True, index=True)
    easypost_id = Column(String(100), unique=True, nullable=False)
    carrier = Column(String(50), nullable=False)  # USPS, UPS, FedEx
    origin = Column(String(50), nullable=False, default="default")
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self):
        return f"<CarrierAccount(easypost_id={self.easypost_id}, carrier={self.carrier}, origin={self.origin})>"
