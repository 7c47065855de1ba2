from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

import timeutil


class Role(str, Enum):
    ADMIN = "ADMIN"
    SECURITY_GUARD = "SECURITY_GUARD"
    MANAGEMENT = "MANAGEMENT"


ALL_ROLES = (Role.ADMIN, Role.SECURITY_GUARD, Role.MANAGEMENT)


class CategoryType(str, Enum):
    VEHICLE = "VEHICLE"
    ROOM_KEY = "ROOM_KEY"
    DEVICE = "DEVICE"
    OTHER = "OTHER"


class LoanStatus(str, Enum):
    BORROWED = "BORROWED"
    RETURNED = "RETURNED"
    OVERDUE = "OVERDUE"


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return timeutil.to_local_naive(value)
    return value


class Pagination(ApiModel):
    total: int
    page: int
    limit: int
    total_pages: int


class Message(ApiModel):
    message: str


# ---------- Office ----------
class OfficeIn(ApiModel):
    name: str = Field(min_length=1)
    address: Optional[str] = None


class OfficeUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1)
    address: Optional[str] = None
    is_active: Optional[bool] = None


class Office(ApiModel):
    id: int
    name: str
    address: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class OfficeDetail(Office):
    user_count: int = 0
    asset_count: int = 0


class OfficeMessage(Message):
    office: Office


# ---------- Category ----------
def parse_roles(text: Optional[str]) -> set[Role]:
    """Roles named in comma-separated text; raises ValueError on an unknown name."""
    if not text:
        return set()
    roles: set[Role] = set()
    for part in text.split(","):
        name = part.strip().upper()
        if not name:
            continue
        roles.add(Role(name))
    return roles


def parse_roles_field(value):
    # accepts ["ADMIN", ...] or the legacy "ADMIN,SECURITY_GUARD" text
    if value is None:
        return None
    if isinstance(value, str):
        return sorted(parse_roles(value), key=ALL_ROLES.index)
    return value


class CategoryIn(ApiModel):
    name: str = Field(min_length=1)
    type: CategoryType
    description: Optional[str] = None
    allowed_roles: Optional[list[Role]] = None

    parse_allowed_roles = field_validator("allowed_roles", mode="before")(parse_roles_field)


class CategoryUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1)
    type: Optional[CategoryType] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
    allowed_roles: Optional[list[Role]] = None

    parse_allowed_roles = field_validator("allowed_roles", mode="before")(parse_roles_field)


class CategoryRef(ApiModel):
    id: int
    name: str
    type: CategoryType


class Category(ApiModel):
    id: int
    name: str
    type: CategoryType
    description: Optional[str] = None
    is_active: bool
    allowed_roles: list[Role]
    asset_count: int = 0
    created_at: datetime
    updated_at: datetime


class CategoryMessage(Message):
    category: Category


# ---------- User ----------
class UserIn(ApiModel):
    nik: str = Field(min_length=1, max_length=10)
    username: str = Field(min_length=3)
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=1)
    role: Role
    office_id: Optional[int] = Field(default=None, ge=1)


class UserUpdate(ApiModel):
    nik: Optional[str] = Field(default=None, min_length=1, max_length=10)
    username: Optional[str] = Field(default=None, min_length=3)
    password: Optional[str] = Field(default=None, min_length=6)
    full_name: Optional[str] = Field(default=None, min_length=1)
    role: Optional[Role] = None
    office_id: Optional[int] = Field(default=None, ge=1)
    is_active: Optional[bool] = None


class UserRef(ApiModel):
    id: int
    full_name: str
    username: str


class User(ApiModel):
    id: int
    nik: str
    username: str
    full_name: str
    role: Role
    office_id: Optional[int] = None
    office: Optional[Office] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class UserMessage(Message):
    user: User


class UserList(ApiModel):
    users: list[User]
    pagination: Pagination


# ---------- Auth ----------
class LoginIn(ApiModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LoginResult(Message):
    token: str
    user: User


# ---------- Asset ----------
class AssetIn(ApiModel):
    name: str = Field(min_length=1)
    code: str = Field(min_length=1)
    category_id: int = Field(ge=1)
    office_id: int = Field(ge=1)
    description: Optional[str] = None


class AssetUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1)
    code: Optional[str] = Field(default=None, min_length=1)
    category_id: Optional[int] = Field(default=None, ge=1)
    office_id: Optional[int] = Field(default=None, ge=1)
    description: Optional[str] = None
    is_available: Optional[bool] = None
    is_active: Optional[bool] = None


class Asset(ApiModel):
    id: int
    name: str
    code: str
    description: Optional[str] = None
    category_id: int
    office_id: int
    is_available: bool
    is_active: bool
    category: CategoryRef
    office: Office
    created_at: datetime
    updated_at: datetime


class AssetMessage(Message):
    asset: Asset


class AssetList(ApiModel):
    assets: list[Asset]
    pagination: Pagination


# ---------- Loan ----------
class LoanIn(ApiModel):
    asset_id: int = Field(ge=1)
    borrower_name: str = Field(min_length=1)
    borrower_phone: Optional[str] = None
    purpose: Optional[str] = None
    return_date: Optional[datetime] = None
    is_third_party: bool = False
    third_party_name: Optional[str] = None
    third_party_address: Optional[str] = None
    loan_photo: Optional[str] = None

    naive_return_date = field_validator("return_date")(_naive)


class LoanReturn(ApiModel):
    notes: Optional[str] = None
    return_photo: Optional[str] = None


class LoanSummary(ApiModel):
    id: int
    borrower_name: str
    borrower_phone: Optional[str] = None
    purpose: Optional[str] = None
    loan_date: datetime
    return_date: Optional[datetime] = None
    actual_return_date: Optional[datetime] = None
    status: LoanStatus
    notes: Optional[str] = None
    is_third_party: bool
    third_party_name: Optional[str] = None
    third_party_address: Optional[str] = None
    loan_photo: Optional[str] = None
    return_photo: Optional[str] = None
    user: UserRef
    created_at: datetime


class Loan(LoanSummary):
    asset_id: int
    user_id: int
    asset: Asset
    updated_at: datetime


class LoanMessage(Message):
    loan: Loan


class LoanList(ApiModel):
    loans: list[Loan]
    pagination: Pagination


class AssetDetail(Asset):
    loans: list[LoanSummary] = []


# ---------- Dashboard ----------
class DashboardCounters(ApiModel):
    total_categories: int
    total_assets: int
    loans_today: int
    active_loan_count: int
    returned_today_count: int
    overdue_loan_count: int
    available_assets: int
    unavailable_assets: int


class DashboardStats(ApiModel):
    stats: DashboardCounters
    recent_loans: list[Loan]


class TrendDataset(ApiModel):
    label: str
    data: list[int]


class LoanTrend(ApiModel):
    labels: list[str]
    dates: list[str]
    datasets: list[TrendDataset]
