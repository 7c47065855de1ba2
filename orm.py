from datetime import datetime
from sqlalchemy import Boolean, String, DateTime, Text, ForeignKey, Integer, Enum as SAEnum, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db import Base
from models import CategoryType, LoanStatus, Role


def _enum(enum_cls):
    return SAEnum(enum_cls, native_enum=False, length=20, validate_strings=True)


class OfficeORM(Base):
    __tablename__ = "offices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    users: Mapped[list["UserORM"]] = relationship(back_populates="office")
    assets: Mapped[list["AssetORM"]] = relationship(back_populates="office")


class CategoryORM(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    type: Mapped[CategoryType] = mapped_column(_enum(CategoryType), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    role_rows: Mapped[list["CategoryRoleORM"]] = relationship(
        back_populates="category",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    assets: Mapped[list["AssetORM"]] = relationship(back_populates="category")

    @property
    def allowed_roles(self) -> set[Role]:
        return {r.role for r in self.role_rows}


class CategoryRoleORM(Base):
    __tablename__ = "category_roles"
    __table_args__ = (UniqueConstraint("category_id", "role", name="uq_category_role"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[Role] = mapped_column(_enum(Role), nullable=False)

    category: Mapped[CategoryORM] = relationship(back_populates="role_rows")


class UserORM(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    nik: Mapped[str] = mapped_column(String(10), nullable=False, unique=True, index=True)
    username: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String, nullable=False)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[Role] = mapped_column(_enum(Role), nullable=False)
    office_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("offices.id"), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    office: Mapped[OfficeORM | None] = relationship(back_populates="users", lazy="joined")
    loans: Mapped[list["LoanORM"]] = relationship(back_populates="user")


class AssetORM(Base):
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_id: Mapped[int] = mapped_column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    office_id: Mapped[int] = mapped_column(Integer, ForeignKey("offices.id"), nullable=False, index=True)

    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    category: Mapped[CategoryORM] = relationship(back_populates="assets", lazy="joined")
    office: Mapped[OfficeORM] = relationship(back_populates="assets", lazy="joined")
    loans: Mapped[list["LoanORM"]] = relationship(
        back_populates="asset",
        cascade="all, delete-orphan",
        order_by=lambda: [LoanORM.created_at.desc(), LoanORM.id.desc()],
    )


class LoanORM(Base):
    __tablename__ = "loans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    asset_id: Mapped[int] = mapped_column(Integer, ForeignKey("assets.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    borrower_name: Mapped[str] = mapped_column(String, nullable=False)
    borrower_phone: Mapped[str | None] = mapped_column(String, nullable=True)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)

    loan_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    return_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    actual_return_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    status: Mapped[LoanStatus] = mapped_column(
        _enum(LoanStatus), nullable=False, default=LoanStatus.BORROWED, index=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_third_party: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    third_party_name: Mapped[str | None] = mapped_column(String, nullable=True)
    third_party_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    loan_photo: Mapped[str | None] = mapped_column(String, nullable=True)
    return_photo: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    asset: Mapped[AssetORM] = relationship(back_populates="loans", lazy="joined")
    user: Mapped[UserORM] = relationship(back_populates="loans", lazy="joined")
