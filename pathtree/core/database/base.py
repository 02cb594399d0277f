"""Declarative base for SQL-backed trees.

Example:
    class Category(Base, OrderedHierarchicalMixin):
        __tablename__ = "categories"
        name: Mapped[str] = mapped_column(String(255))

    store = SQLAlchemyDocumentStore(session_factory, Category)
"""

from __future__ import annotations

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase, declared_attr

# Consistent naming convention for database constraints
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base with predictable constraint names.

    The table name defaults to the lowercase class name; set __tablename__
    explicitly for anything else.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return cls.__name__.lower()


__all__ = [
    "NAMING_CONVENTION",
    "Base",
]
