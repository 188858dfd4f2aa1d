"""Tenant registry model.

Global table listing every tenant; each tenant's data lives in its own
``tenant_<slug>`` schema.
"""

import uuid

from sqlalchemy import String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from oncall.models.base import Base, JSONType, TimestampMixin


class Tenant(Base, TimestampMixin):
    """A tenant of the platform."""

    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # URL-safe identifier, also used to derive the schema name
    slug: Mapped[str] = mapped_column(
        String(63),
        nullable=False,
        unique=True,
        index=True,
    )

    config: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<Tenant(slug={self.slug})>"
