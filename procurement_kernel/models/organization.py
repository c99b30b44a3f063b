"""
Module: procurement_kernel.models.organization
Responsibility: ORM persistence for the organizational hierarchy that drives
    approval routing and authorization: departments, users (with their direct
    manager), and cross-department additional role grants.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value types only.

Invariants enforced:
    - Department.name is unique (uq_department_name).  Legacy budget
      categories on purchase requests refer to departments by name.
    - At most one additional role grant per (user, department)
      (uq_additional_role_user_department).
    - Department.budget is a Decimal >= 0; 0 disables threshold monitoring.

Failure modes:
    - IntegrityError on duplicate department name or grant.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import Base, TimestampedBase, UUIDString
from procurement_kernel.domain.dtos import Approver
from procurement_kernel.domain.types import UserRole


class Department(TimestampedBase):
    """
    Organizational unit with an annual budget.

    Non-goals:
        - parent_id is informational; approval routing never walks the
          department hierarchy.
    """

    __tablename__ = "departments"

    __table_args__ = (
        UniqueConstraint("name", name="uq_department_name"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    budget: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("departments.id"),
        nullable=True,
    )

    @property
    def monitoring_enabled(self) -> bool:
        return self.budget > 0

    def __repr__(self) -> str:
        return f"<Department {self.name} budget={self.budget}>"


class User(TimestampedBase):
    """
    A person who raises or approves purchase requests.

    Contract:
        role and manager_id define the approval chain:
        MEMBER -> manager, MANAGER -> department senior manager or admin,
        SENIOR_MANAGER -> chain-terminal.
    """

    __tablename__ = "users"

    __table_args__ = (
        Index("idx_user_role", "role"),
        Index("idx_user_department", "department_id"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    role: Mapped[UserRole] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.MEMBER,
    )

    # Primary department
    department_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("departments.id"),
        nullable=True,
    )

    # Direct supervisor
    manager_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=True,
    )

    department: Mapped[Department | None] = relationship(
        "Department",
        foreign_keys=[department_id],
    )

    manager: Mapped[User | None] = relationship(
        "User",
        remote_side="User.id",
        foreign_keys=[manager_id],
    )

    additional_roles: Mapped[list[AdditionalRole]] = relationship(
        "AdditionalRole",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def holds_grant(self, department_id: UUID | None, roles) -> bool:
        """True if an additional grant in ``department_id`` has one of ``roles``."""
        if department_id is None:
            return False
        return any(
            grant.department_id == department_id and UserRole(grant.role) in roles
            for grant in self.additional_roles
        )

    def to_approver(self) -> Approver:
        return Approver(
            user_id=self.id,
            name=self.name,
            email=self.email,
            role=UserRole(self.role),
        )

    def __repr__(self) -> str:
        return f"<User {self.name} ({self.role})>"


class AdditionalRole(Base):
    """Cross-department authority grant for a user."""

    __tablename__ = "additional_roles"

    __table_args__ = (
        UniqueConstraint(
            "user_id", "department_id",
            name="uq_additional_role_user_department",
        ),
        Index("idx_additional_role_department", "department_id"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    department_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("departments.id"),
        nullable=False,
    )

    role: Mapped[UserRole] = mapped_column(String(20), nullable=False)

    user: Mapped[User] = relationship("User", back_populates="additional_roles")

    def __repr__(self) -> str:
        return f"<AdditionalRole user={self.user_id} dept={self.department_id} {self.role}>"
