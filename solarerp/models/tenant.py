from __future__ import annotations

from sqlalchemy import CheckConstraint, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from solarerp.database.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class Tenant(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    """One row per customer organization in the tenant registry.

    Secrets are stored encrypted; decrypted values only ever exist in process
    memory (see ``solarerp.modules.tenancy.schemas.TenantConfig``).
    """

    __tablename__ = "tenants"

    tenant_key: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    mode: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False)

    # Database connection
    db_host: Mapped[str | None] = mapped_column(Text)
    db_port: Mapped[int | None] = mapped_column(Integer)
    db_name: Mapped[str | None] = mapped_column(Text)
    db_user: Mapped[str | None] = mapped_column(Text)
    db_password_encrypted: Mapped[str | None] = mapped_column(Text)

    # Object storage
    bucket_provider: Mapped[str | None] = mapped_column(Text)
    bucket_name: Mapped[str | None] = mapped_column(Text)
    bucket_access_key_encrypted: Mapped[str | None] = mapped_column(Text)
    bucket_secret_key_encrypted: Mapped[str | None] = mapped_column(Text)
    bucket_region: Mapped[str | None] = mapped_column(Text)
    bucket_endpoint: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("mode IN ('shared', 'dedicated')", name="tenants_mode_check"),
        CheckConstraint("status IN ('active', 'suspended')", name="tenants_status_check"),
    )
