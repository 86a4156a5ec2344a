"""
Relational models for RestoPOS.

These models are the canonical schema and are used by Alembic for
migration generation. Money columns are Numeric(12, 2) and stock
quantities Numeric(12, 3); both are read back as ``decimal.Decimal``.
"""

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from restopos.utils.time_utils import utcnow

Base = declarative_base()

Money = Numeric(12, 2, asdecimal=True)
Quantity = Numeric(12, 3, asdecimal=True)


class OrderType(str, enum.Enum):
    DINE_IN = "DINE_IN"
    TAKEAWAY = "TAKEAWAY"
    DELIVERY = "DELIVERY"


class OrderStatus(str, enum.Enum):
    PREPARING = "PREPARING"
    READY = "READY"
    OUT = "OUT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    WALLET = "wallet"
    MIXED = "mixed"


class SaleStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PAID = "PAID"


class PurchaseStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    POSTED = "POSTED"


class ZoneStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class User(Base):
    """Staff accounts: admin, manager, cashier, storekeeper."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    roles = Column(JSON, default=list, nullable=False)  # e.g. ["cashier"]
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username})>"


class Material(Base):
    """Stock-tracked raw material."""

    __tablename__ = "materials"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), unique=True, nullable=False)
    unit = Column(String(40), nullable=False)
    cost = Column(Money, nullable=False, default=0)  # per unit
    stock = Column(Quantity, nullable=False, default=0)
    min_stock = Column(Quantity, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_materials_stock_non_negative"),
    )

    def __repr__(self):
        return f"<Material(id={self.id}, name={self.name}, stock={self.stock})>"


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    products = relationship("Product", back_populates="category")

    def __repr__(self):
        return f"<Category(id={self.id}, name={self.name})>"


class Product(Base):
    """Sellable item with a recipe of materials."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), unique=True, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    price = Column(Money, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    category = relationship("Category", back_populates="products")
    recipe_items = relationship(
        "RecipeItem",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="RecipeItem.id",
    )

    def __repr__(self):
        return f"<Product(id={self.id}, name={self.name}, price={self.price})>"


class RecipeItem(Base):
    """Quantity of one material consumed per unit of a product."""

    __tablename__ = "recipe_items"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False, index=True)
    quantity = Column(Quantity, nullable=False)

    __table_args__ = (
        UniqueConstraint("product_id", "material_id", name="uq_recipe_items_product_material"),
    )

    product = relationship("Product", back_populates="recipe_items")
    material = relationship("Material")

    def __repr__(self):
        return f"<RecipeItem(product_id={self.product_id}, material_id={self.material_id}, quantity={self.quantity})>"


class DiningTable(Base):
    """Dine-in table. ``is_occupied`` mirrors whether an active order references it."""

    __tablename__ = "dining_tables"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(60), unique=True, nullable=False)
    number = Column(Integer, unique=True, nullable=False)
    is_occupied = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    orders = relationship("Order", back_populates="table")

    def __repr__(self):
        return f"<DiningTable(id={self.id}, number={self.number}, occupied={self.is_occupied})>"


class Zone(Base):
    __tablename__ = "zones"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), unique=True, nullable=False)
    limit_km = Column(Numeric(8, 2, asdecimal=True), nullable=False, default=0)
    fee = Column(Money, nullable=False, default=0)
    min_order = Column(Money, nullable=False, default=0)
    status = Column(Enum(ZoneStatus, name="zone_status"), nullable=False, default=ZoneStatus.ACTIVE)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Zone(id={self.id}, name={self.name}, fee={self.fee})>"


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), unique=True, nullable=False)
    phone = Column(String(40), nullable=False)
    status = Column(String(40), nullable=False, default="available")
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Driver(id={self.id}, name={self.name})>"


class Order(Base):
    """Customer order. Items keep the unit price captured at creation."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(32), unique=True, nullable=False)
    type = Column(Enum(OrderType, name="order_type"), nullable=False)
    status = Column(Enum(OrderStatus, name="order_status"), nullable=False, default=OrderStatus.PREPARING)
    customer_name = Column(String(120), nullable=False)
    zone_id = Column(Integer, ForeignKey("zones.id"), nullable=True, index=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True, index=True)
    table_id = Column(Integer, ForeignKey("dining_tables.id"), nullable=True, index=True)
    discount = Column(Money, nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2, asdecimal=True), nullable=False, default=0)
    tax_amount = Column(Money, nullable=False, default=0)
    payment = Column(Enum(PaymentMethod, name="payment_method"), nullable=False, default=PaymentMethod.CASH)
    notes = Column(String(500), nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_orders_status_table", "status", "table_id"),
        Index("idx_orders_created", "created_at"),
    )

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id")
    zone = relationship("Zone")
    driver = relationship("Driver")
    table = relationship("DiningTable", back_populates="orders")
    created_by = relationship("User")
    sale = relationship("Sale", back_populates="order", uselist=False)

    def __repr__(self):
        return f"<Order(id={self.id}, code={self.code}, status={self.status})>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String(120), nullable=False)  # product name at order time
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Money, nullable=False)
    total_price = Column(Money, nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    def __repr__(self):
        return f"<OrderItem(order_id={self.order_id}, product_id={self.product_id}, quantity={self.quantity})>"


class Sale(Base):
    """Invoice. At most one sale exists per order (``order_id`` is unique)."""

    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    invoice_no = Column(String(32), unique=True, nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), unique=True, nullable=True)
    date = Column(DateTime, nullable=False, default=utcnow)
    customer_name = Column(String(120), nullable=False)
    total = Column(Money, nullable=False, default=0)
    status = Column(Enum(SaleStatus, name="sale_status"), nullable=False, default=SaleStatus.DRAFT)
    notes = Column(String(500), nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_sales_status_date", "status", "date"),
    )

    order = relationship("Order", back_populates="sale")
    items = relationship("SaleItem", back_populates="sale", cascade="all, delete-orphan", order_by="SaleItem.id")

    def __repr__(self):
        return f"<Sale(id={self.id}, invoice_no={self.invoice_no}, status={self.status})>"


class SaleItem(Base):
    __tablename__ = "sale_items"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(120), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Money, nullable=False, default=0)
    total_price = Column(Money, nullable=False, default=0)

    sale = relationship("Sale", back_populates="items")


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), unique=True, nullable=False)
    phone = Column(String(40), nullable=True)
    email = Column(String(120), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Supplier(id={self.id}, name={self.name}, active={self.is_active})>"


class Purchase(Base):
    """Incoming stock. Only POSTED purchases count toward material stock."""

    __tablename__ = "purchases"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(32), unique=True, nullable=False)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False, index=True)
    date = Column(DateTime, nullable=False, default=utcnow)
    total = Column(Money, nullable=False, default=0)
    status = Column(Enum(PurchaseStatus, name="purchase_status"), nullable=False, default=PurchaseStatus.DRAFT)
    notes = Column(String(500), nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    supplier = relationship("Supplier")
    items = relationship("PurchaseItem", back_populates="purchase", cascade="all, delete-orphan", order_by="PurchaseItem.id")

    def __repr__(self):
        return f"<Purchase(id={self.id}, code={self.code}, status={self.status})>"


class PurchaseItem(Base):
    __tablename__ = "purchase_items"

    id = Column(Integer, primary_key=True, index=True)
    purchase_id = Column(Integer, ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False, index=True)
    quantity = Column(Quantity, nullable=False)
    unit_cost = Column(Money, nullable=False)
    total_cost = Column(Money, nullable=False)

    purchase = relationship("Purchase", back_populates="items")
    material = relationship("Material")


class Waste(Base):
    """Recorded loss of a material."""

    __tablename__ = "waste"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(DateTime, nullable=False, default=utcnow)
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False, index=True)
    quantity = Column(Quantity, nullable=False)
    reason = Column(String(200), nullable=False)
    cost = Column(Money, nullable=False, default=0)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    material = relationship("Material")

    def __repr__(self):
        return f"<Waste(id={self.id}, material_id={self.material_id}, quantity={self.quantity})>"


class Expense(Base):
    """Operating expense entered by hand (rent, utilities, wages...)."""

    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(DateTime, nullable=False, default=utcnow, index=True)
    title = Column(String(200), nullable=False)
    vendor = Column(String(180), nullable=True)
    amount = Column(Money, nullable=False, default=0)
    notes = Column(String(500), nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Expense(id={self.id}, title={self.title}, amount={self.amount})>"
