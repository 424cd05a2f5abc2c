# provide dataclass models, plus their JSON (de)serialization for the key-value store

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal, Optional, Tuple

Category = Literal["Women", "Dresses", "Accessories", "Deals"]
Role = Literal["Customer", "Employee", "Administrator"]
InvoiceStatus = Literal["Paid", "Pending", "Void"]
OfferStatus = Literal["Upcoming", "Active", "Expired"]

CATEGORIES: Tuple[str, ...] = ("Women", "Dresses", "Accessories", "Deals")
ROLES: Tuple[str, ...] = ("Customer", "Employee", "Administrator")
STAFF_ROLES: Tuple[str, ...] = ("Employee", "Administrator")
GENDERS: Tuple[str, ...] = ("male", "female", "other")
PAYMENT_METHODS: Tuple[str, ...] = ("Cash", "Transfer", "Mobile Payment", "Other")
SUPPORT_REASONS: Tuple[str, ...] = (
    "Question",
    "Complaint",
    "Suggestion",
    "Technical Support",
)

PLACEHOLDER_IMAGE = "https://placehold.co/600x400.png"
DEFAULT_CUSTOMER_NAME = "General Customer"


@dataclass(frozen=True)
class Product:
    pid: str
    name: str
    category: str
    price: float
    stock_count: int
    descr: str
    image: str = PLACEHOLDER_IMAGE

    def to_dict(self) -> dict:
        return {
            "pid": self.pid,
            "name": self.name,
            "category": self.category,
            "price": self.price,
            "stock_count": self.stock_count,
            "descr": self.descr,
            "image": self.image,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        return cls(
            pid=str(data["pid"]),
            name=data["name"],
            category=data.get("category", "Women"),
            price=float(data["price"]),
            stock_count=int(data.get("stock_count", 0)),
            descr=data.get("descr", ""),
            image=data.get("image", PLACEHOLDER_IMAGE),
        )


@dataclass(frozen=True)
class InvoiceLine:
    pid: str
    name: str
    price: float  # unit price when the line entered the cart
    qty: int

    @property
    def subtotal(self) -> float:
        return self.price * self.qty

    def to_dict(self) -> dict:
        return {"pid": self.pid, "name": self.name, "price": self.price, "qty": self.qty}

    @classmethod
    def from_dict(cls, data: dict) -> "InvoiceLine":
        return cls(
            pid=str(data["pid"]),
            name=data["name"],
            price=float(data["price"]),
            qty=int(data["qty"]),
        )


@dataclass(frozen=True)
class Invoice:
    ino: str
    created: datetime
    customer_name: str
    lines: Tuple[InvoiceLine, ...]
    total: float
    payment_method: str
    status: str = "Paid"

    @property
    def is_void(self) -> bool:
        return self.status == "Void"

    @property
    def units(self) -> int:
        return sum(line.qty for line in self.lines)

    def to_dict(self) -> dict:
        return {
            "ino": self.ino,
            "created": self.created.isoformat(),
            "customer_name": self.customer_name,
            "lines": [line.to_dict() for line in self.lines],
            "total": self.total,
            "payment_method": self.payment_method,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Invoice":
        return cls(
            ino=data["ino"],
            created=datetime.fromisoformat(data["created"]),
            customer_name=data.get("customer_name") or DEFAULT_CUSTOMER_NAME,
            lines=tuple(InvoiceLine.from_dict(d) for d in data.get("lines", [])),
            total=float(data["total"]),
            payment_method=data["payment_method"],
            status=data.get("status", "Paid"),
        )


@dataclass(frozen=True)
class Offer:
    oid: str
    pid: str
    discount_price: float
    start_date: datetime
    end_date: datetime
    descr: str

    def status(self, now: Optional[datetime] = None) -> OfferStatus:
        now = now or datetime.now()
        if now < self.start_date:
            return "Upcoming"
        if now > self.end_date:
            return "Expired"
        return "Active"

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return self.status(now) == "Active"

    def to_dict(self) -> dict:
        return {
            "oid": self.oid,
            "pid": self.pid,
            "discount_price": self.discount_price,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "descr": self.descr,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Offer":
        return cls(
            oid=data["oid"],
            pid=str(data["pid"]),
            discount_price=float(data["discount_price"]),
            start_date=datetime.fromisoformat(data["start_date"]),
            end_date=datetime.fromisoformat(data["end_date"]),
            descr=data.get("descr", ""),
        )


@dataclass(frozen=True)
class User:
    uid: str
    name: str
    email: str
    role: str  # "Customer", "Employee" or "Administrator"
    pwd_hash: str = field(repr=False)
    status: str = "active"  # or "blocked"
    last_login: Optional[datetime] = None
    size: Optional[str] = None
    gender: Optional[str] = None

    @property
    def is_blocked(self) -> bool:
        return self.status == "blocked"

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def to_dict(self) -> dict:
        return {
            "uid": self.uid,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "pwd_hash": self.pwd_hash,
            "status": self.status,
            "last_login": self.last_login.isoformat() if self.last_login else None,
            "size": self.size,
            "gender": self.gender,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        last_login = data.get("last_login")
        return cls(
            uid=data["uid"],
            name=data["name"],
            email=data["email"],
            role=data["role"],
            pwd_hash=data.get("pwd_hash", ""),
            status=data.get("status", "active"),
            last_login=datetime.fromisoformat(last_login) if last_login else None,
            size=data.get("size"),
            gender=data.get("gender"),
        )


@dataclass(frozen=True)
class SupportRequest:
    rid: str
    created: date
    reason: str
    message: str
    status: str = "Pending"  # "Pending" | "In Progress" | "Answered"

    def to_dict(self) -> dict:
        return {
            "rid": self.rid,
            "created": self.created.isoformat(),
            "reason": self.reason,
            "message": self.message,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SupportRequest":
        return cls(
            rid=data["rid"],
            created=date.fromisoformat(data["created"]),
            reason=data["reason"],
            message=data["message"],
            status=data.get("status", "Pending"),
        )
