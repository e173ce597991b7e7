"""Product model."""
from sqlalchemy import Column, BigInteger, String, Boolean, Numeric, DateTime
from sqlalchemy.sql import func
from stockledger.database import Base, BigIntPK


class Product(Base):
    """
    Product reference data.

    Stock is deliberately not a column here: it is always the sum of the
    product's stock movements (see ``movement_store.current_stock``).
    """

    __tablename__ = 'product'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    sku = Column(String(64), nullable=True, unique=True)
    name = Column(String(200), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    sale_price = Column(Numeric(12, 2), nullable=False)
    cost = Column(Numeric(12, 2), nullable=False, default=0, server_default='0.00')
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0, server_default='0.00')  # percent
    min_stock_qty = Column(BigInteger, nullable=False, default=0, server_default='0')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', sku='{self.sku}')>"
