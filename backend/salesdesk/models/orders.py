from __future__ import annotations

from ..extensions import db
from ..money import cents_to_amount
from salesdesk.time_utils import to_utc_z, utcnow


ORDER_STATUSES = ("pending", "confirmed", "shipped", "delivered", "cancelled")


class Order(db.Model):
    """
    Customer order document.

    total_amount_cents is fixed at creation:
        sum(item.total_price_cents) + tax_amount_cents - discount_amount_cents
    Later discount/tax edits do not recompute it.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.Index("ix_orders_order_date", "order_date"),
        db.Index("ix_orders_customer_date", "customer_id", "order_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    # Creating actor; opaque to the core
    user_id = db.Column(db.Integer, nullable=False)

    # Human-readable number (e.g. "ORD-001")
    order_number = db.Column(db.String(32), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    order_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "user_id": self.user_id,
            "order_number": self.order_number,
            "status": self.status,
            "total_amount": cents_to_amount(self.total_amount_cents),
            "discount_amount": cents_to_amount(self.discount_amount_cents),
            "tax_amount": cents_to_amount(self.tax_amount_cents),
            "notes": self.notes,
            "order_date": to_utc_z(self.order_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class OrderItem(db.Model):
    """Line item on an order. Price is captured at order time and never changes."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        db.CheckConstraint("unit_price_cents > 0", name="ck_order_items_price_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": cents_to_amount(self.unit_price_cents),
            "total_price": cents_to_amount(self.total_price_cents),
            "created_at": to_utc_z(self.created_at),
        }
