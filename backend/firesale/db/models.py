from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Item(Base):
    __tablename__ = "items"
    __table_args__ = (
        Index("ix_items_store_deal_ends", "store_id", "deal_ends_at"),
        CheckConstraint(
            "quantity_available >= 0",
            name="ck_items_quantity_available_non_negative",
        ),
        CheckConstraint("original_price >= 0", name="ck_items_original_price_non_negative"),
        CheckConstraint("discount_price >= 0", name="ck_items_discount_price_non_negative"),
        CheckConstraint(
            "discount_price <= original_price",
            name="ck_items_discount_not_above_original",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String, nullable=False)
    original_price = Column(Numeric(10, 2), nullable=False)
    discount_price = Column(Numeric(10, 2), nullable=False)
    quantity_available = Column(Integer, nullable=False, default=0)

    store_id = Column(String, nullable=False, index=True)
    store_name = Column(String, nullable=False, default="")
    category = Column(String, nullable=False, default="Other", index=True)
    photo_url = Column(String, nullable=True)

    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    time_left = Column(String, nullable=False)  # e.g. "3 days", "12 hours"
    deal_ends_at = Column(DateTime, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    reservations = relationship("Reservation", back_populates="item")
    purchases = relationship("Purchase", back_populates="item")


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        Index(
            "ix_reservations_item_status_expires",
            "item_id",
            "status",
            "expires_at",
        ),
        Index("ix_reservations_user_status", "user_id", "status"),
        Index("ix_reservations_status_expires", "status", "expires_at"),
        Index(
            "uq_reservations_pending_per_item_user",
            "item_id",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        CheckConstraint("quantity > 0", name="ck_reservations_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(
        Integer,
        ForeignKey("items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    user_id = Column(String, nullable=False, index=True)
    store_id = Column(String, nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=1)
    status = Column(String, nullable=False, default="pending")
    expires_at = Column(DateTime, nullable=False, index=True)
    closed_at = Column(DateTime, nullable=True)
    reason = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    item = relationship("Item", back_populates="reservations")
    purchase = relationship("Purchase", back_populates="reservation", uselist=False)


class Purchase(Base):
    __tablename__ = "purchases"
    __table_args__ = (
        Index("ix_purchases_store_created", "store_id", "created_at"),
        CheckConstraint("quantity > 0", name="ck_purchases_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(
        Integer,
        ForeignKey("items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    reservation_id = Column(
        Integer,
        ForeignKey("reservations.id", ondelete="RESTRICT"),
        nullable=True,
        unique=True,
    )
    user_id = Column(String, nullable=False, index=True)
    store_id = Column(String, nullable=False, index=True)
    item_name = Column(String, nullable=False)
    category = Column(String, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    pickup_by = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    item = relationship("Item", back_populates="purchases")
    reservation = relationship("Reservation", back_populates="purchase")


class Favorite(Base):
    __tablename__ = "favorites"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_favorites_user_item"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    item_id = Column(
        Integer,
        ForeignKey("items.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    item = relationship("Item")
