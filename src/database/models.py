"""
SQLAlchemy models for products, outlets and the stock relation.
Used by catalog_real when DATABASE_URL is set. Requires PostGIS.
"""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import BigInteger, ForeignKey, Index, String, Text, func, literal_column
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import UserDefinedType

TEXT_SEARCH_CONFIG = "english"


class Geography(UserDefinedType):
    """PostGIS geography(Point, 4326). Bound from EWKT, read back as EWKT."""

    cache_ok = True

    def get_col_spec(self, **kw) -> str:
        return "geography(Point,4326)"

    def bind_expression(self, bindvalue):
        return func.ST_GeogFromText(bindvalue, type_=self)

    def column_expression(self, col):
        return func.ST_AsEWKT(col, type_=self)


class Base(DeclarativeBase):
    pass


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    synonyms: Mapped[List[str]] = mapped_column(ARRAY(Text), nullable=False, server_default="{}")
    # name + synonyms, the surface the full-text index covers
    search_text: Mapped[str] = mapped_column(Text, nullable=False)

    stock_links: Mapped[list["StockLink"]] = relationship("StockLink", back_populates="product", passive_deletes=True)


class Outlet(Base):
    __tablename__ = "outlets"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    region: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    geom: Mapped[str] = mapped_column(Geography(), nullable=False)

    stock_links: Mapped[list["StockLink"]] = relationship("StockLink", back_populates="outlet", passive_deletes=True)

    __table_args__ = (Index("ix_outlets_geom", "geom", postgresql_using="gist"),)


class StockLink(Base):
    __tablename__ = "stock_links"

    outlet_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("outlets.id", ondelete="CASCADE"), primary_key=True)
    product_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True, index=True
    )

    outlet: Mapped["Outlet"] = relationship("Outlet", back_populates="stock_links")
    product: Mapped["Product"] = relationship("Product", back_populates="stock_links")


# Must match the expression used in catalog_real's search query for the planner to pick it.
Index(
    "ix_products_search_tsv",
    func.to_tsvector(literal_column(f"'{TEXT_SEARCH_CONFIG}'::regconfig"), Product.search_text),
    postgresql_using="gin",
)
