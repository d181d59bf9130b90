from sqlalchemy import Column, String, ForeignKey, Boolean
from sqlalchemy.orm import relationship
from src.database import Base
from src.shared.models import AuditMixin


class Tenant(Base, AuditMixin):
    """A law firm. Every case, document and knowledge chunk is scoped to one."""
    __tablename__ = "tenants"

    name = Column(String, nullable=False)
    domain = Column(String, unique=True, nullable=True)

    users = relationship("User", back_populates="tenant")


class User(Base, AuditMixin):
    __tablename__ = "users"

    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    # Elevated privilege: may release draft locks held by others
    is_admin = Column(Boolean, default=False, nullable=False)
    tenant_id = Column(ForeignKey("tenants.id"), nullable=False, index=True)

    tenant = relationship("Tenant", back_populates="users")

    @property
    def full_name(self) -> str:
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or self.email
