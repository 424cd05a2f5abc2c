# src/db/crud.py
from __future__ import annotations

import hashlib
import hmac
import math
import os
import random
import re
import secrets
import uuid
from dataclasses import replace
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import aiosqlite

from db import models
from db.database import (
    connect,
    delete_key,
    keys_with_prefix,
    read_key,
    transaction,
    write_key,
)
from db.errors import (
    AuthError,
    CorruptStateError,
    NotFoundError,
    StockError,
    ValidationError,
)
from utils.cart import Cart, CartLine
from utils.logger import get_logger

_logger = get_logger(__name__)

PRODUCTS_KEY = "click-shop-products"
INVOICES_KEY = "click-shop-invoices"
OFFERS_KEY = "click-shop-offers"
SESSION_KEY = "click-shop-user"
VISITS_KEY = "click-shop-catalog-visits"
USER_KEY_PREFIX = "user-"

ROLE_SECRET_KEYS: Dict[str, str] = {
    "Employee": os.getenv("CLICKSHOP_EMPLOYEE_KEY", "empleadovip2024"),
    "Administrator": os.getenv("CLICKSHOP_ADMIN_KEY", "superadmin2024"),
}

CATEGORY_TABS: Tuple[str, ...] = (
    "All",
    "Women's clothing",
    "Accessories",
    "Footwear",
    "Specials",
    "Favorites",
)
SPECIALS_PRICE_CEILING = 40.0

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _to_int(val) -> Optional[int]:
    try:
        return int(val)
    except (TypeError, ValueError):
        return None


def user_key(email: str) -> str:
    return f"{USER_KEY_PREFIX}{email}"


def favorites_key(uid: str) -> str:
    return f"click-shop-favorites-{uid}"


def support_key(uid: str) -> str:
    return f"support-requests-{uid}"


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def hash_password(pwd: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(8)
    digest = hashlib.pbkdf2_hmac("sha256", pwd.encode(), salt.encode(), 100_000)
    return f"{salt}${digest.hex()}"


def check_password(pwd: str, pwd_hash: str) -> bool:
    salt, _, _ = pwd_hash.partition("$")
    if not salt:
        return False
    return hmac.compare_digest(hash_password(pwd, salt), pwd_hash)


async def _load_products(conn: aiosqlite.Connection) -> List[models.Product]:
    stored = await read_key(conn, PRODUCTS_KEY)
    return [models.Product.from_dict(d) for d in stored.unwrap([])]


async def _load_invoices(conn: aiosqlite.Connection) -> List[models.Invoice]:
    stored = await read_key(conn, INVOICES_KEY)
    return [models.Invoice.from_dict(d) for d in stored.unwrap([])]


async def _load_offers(conn: aiosqlite.Connection) -> List[models.Offer]:
    stored = await read_key(conn, OFFERS_KEY)
    return [models.Offer.from_dict(d) for d in stored.unwrap([])]


async def _load_user(conn: aiosqlite.Connection, email: str) -> Optional[models.User]:
    stored = await read_key(conn, user_key(email))
    data = stored.unwrap(None)
    return models.User.from_dict(data) if data else None


async def _save_products(
    conn: aiosqlite.Connection, products: Iterable[models.Product]
) -> None:
    await write_key(conn, PRODUCTS_KEY, [p.to_dict() for p in products])


# ---------------------------
# Catalog (browse, search)
# ---------------------------


async def list_products() -> List[models.Product]:
    """All products in catalog order."""
    async with connect() as conn:
        return await _load_products(conn)


async def get_product(pid: str) -> Optional[models.Product]:
    """Fetch a product by pid."""
    for prod in await list_products():
        if prod.pid == str(pid):
            return prod
    return None


async def search_products(query: str) -> List[models.Product]:
    """
    Case-insensitive mixed search over name/descr.
    Rules:
    - Empty string: return all products in catalog order.
    - Numeric only: exact pid match first; keyword search only if no pid matches.
    - Multiple words: exact phrase first, then each word; no duplicates.
    - Single word: keyword search.
    """
    phrase = (query or "").strip().lower()
    products = await list_products()
    if not phrase:
        return products

    def matching(term: str) -> List[models.Product]:
        return [
            p for p in products if term in p.name.lower() or term in p.descr.lower()
        ]

    if phrase.isdigit():
        exact = [p for p in products if p.pid == phrase]
        return exact or matching(phrase)

    words = [w for w in phrase.split() if w]
    if len(words) == 1:
        return matching(phrase)

    results: List[models.Product] = []
    seen: set[str] = set()
    for term in [phrase, *words]:
        for prod in matching(term):
            if prod.pid in seen:
                continue
            seen.add(prod.pid)
            results.append(prod)
    return results


def filter_by_tab(
    products: Sequence[models.Product], tab: str, favorites: Iterable[str] = ()
) -> List[models.Product]:
    available = [p for p in products if p.stock_count > 0]
    if tab == "All":
        return available
    if tab == "Women's clothing":
        return [p for p in available if p.category in ("Women", "Dresses")]
    if tab == "Accessories":
        return [p for p in available if p.category == "Accessories"]
    if tab == "Footwear":
        # no footwear in the catalog yet
        return []
    if tab == "Specials":
        return [
            p
            for p in available
            if p.category == "Deals" or p.price < SPECIALS_PRICE_CEILING
        ]
    if tab == "Favorites":
        fav = set(favorites)
        return [p for p in available if p.pid in fav]
    return [p for p in available if p.category == tab]


async def products_by_category(
    tab: str, favorites: Iterable[str] = ()
) -> List[models.Product]:
    """In-stock products for one catalog tab (see CATEGORY_TABS)."""
    return filter_by_tab(await list_products(), tab, favorites)


async def record_catalog_visit() -> int:
    """Increment and return the catalog visit counter."""
    async with transaction() as conn:
        stored = await read_key(conn, VISITS_KEY)
        visits = (_to_int(stored.unwrap(0)) or 0) + 1
        await write_key(conn, VISITS_KEY, visits)
    return visits


async def catalog_visits() -> int:
    async with connect() as conn:
        stored = await read_key(conn, VISITS_KEY)
    return _to_int(stored.unwrap(0)) or 0


# ---------------------------
# Inventory Registration
# ---------------------------


def _generate_pid(taken: set[str]) -> str:
    """Generate a pid that isn't already in use."""
    while True:
        pid = str(random.randint(1000, 999999))
        if pid not in taken:
            return pid


async def register_stock(
    name: str,
    price: float,
    qty: int,
    category: str,
    descr: str = "",
) -> Tuple[models.Product, bool]:
    """
    Add stock for a product, matching an existing product by case-insensitive name.
    On a match stock is incremented and price/category/descr are overwritten.
    Returns (product, created).
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Product name is required.")
    if price is None or not math.isfinite(price) or price <= 0:
        raise ValidationError("Price must be greater than zero.")
    if qty is None or not math.isfinite(qty) or int(qty) != qty or qty < 1:
        raise ValidationError("Quantity must be a whole number of at least 1.")
    if category not in models.CATEGORIES:
        raise ValidationError(f"Unknown category '{category}'.")
    qty = int(qty)
    descr = (descr or "").strip()

    async with transaction() as conn:
        products = await _load_products(conn)
        for i, prod in enumerate(products):
            if prod.name.lower() == name.lower():
                updated = replace(
                    prod,
                    stock_count=prod.stock_count + qty,
                    price=float(price),
                    category=category,
                    descr=descr,
                )
                products[i] = updated
                await _save_products(conn, products)
                _logger.info(
                    f"Stock for {updated.pid} '{updated.name}' raised to {updated.stock_count}"
                )
                return updated, False

        created = models.Product(
            pid=_generate_pid({p.pid for p in products}),
            name=name,
            category=category,
            price=float(price),
            stock_count=qty,
            descr=descr,
        )
        products.append(created)
        await _save_products(conn, products)
    _logger.info(f"Registered product {created.pid} '{created.name}' x{qty}")
    return created, True


# ---------------------------
# Cart (in memory, validated against live stock)
# ---------------------------


async def _require_product(pid: str) -> models.Product:
    prod = await get_product(pid)
    if prod is None:
        raise NotFoundError(f"Product {pid} not found.")
    return prod


async def add_to_cart(cart: Cart, pid: str) -> CartLine:
    """Add one unit of a product to the cart, checked against current stock."""
    return cart.add(await _require_product(pid))


async def set_cart_qty(cart: Cart, pid: str, qty: int) -> CartLine:
    """Set a cart line's quantity if 1 <= qty <= current stock; else StockError."""
    return cart.set_qty(await _require_product(pid), qty)


# ---------------------------
# Checkout & Invoices
# ---------------------------


def _new_invoice_id(when: datetime, taken: set[str]) -> str:
    stamp = int(when.timestamp() * 1000)
    while f"INV-{stamp}" in taken:
        stamp += 1
    return f"INV-{stamp}"


async def checkout(
    cart: Cart,
    payment_method: Optional[str],
    customer_name: Optional[str] = None,
    when: Optional[datetime] = None,
) -> models.Invoice:
    """
    Turn the cart into a Paid invoice and decrement stock, in one serialized transaction.
    Each line is re-checked against the stock read inside the transaction; on any
    shortfall nothing is written. The cart is cleared on success.
    """
    if not cart:
        raise ValidationError("Cart is empty. Add products to generate an invoice.")
    if not payment_method:
        raise ValidationError("Select a payment method.")
    if payment_method not in models.PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method '{payment_method}'.")
    when = when or datetime.now()
    lines = cart.freeze()

    async with transaction() as conn:
        products = await _load_products(conn)
        by_pid = {p.pid: p for p in products}
        for line in lines:
            prod = by_pid.get(line.pid)
            if prod is None:
                raise StockError(f"'{line.name}' is no longer in the catalog.")
            if line.qty > prod.stock_count:
                raise StockError(
                    f"Only {prod.stock_count} units of '{prod.name}' left, cart holds {line.qty}."
                )

        invoices = await _load_invoices(conn)
        invoice = models.Invoice(
            ino=_new_invoice_id(when, {inv.ino for inv in invoices}),
            created=when,
            customer_name=(customer_name or "").strip()
            or models.DEFAULT_CUSTOMER_NAME,
            lines=tuple(lines),
            total=sum(line.subtotal for line in lines),
            payment_method=payment_method,
            status="Paid",
        )
        for line in lines:
            prod = by_pid[line.pid]
            by_pid[line.pid] = replace(prod, stock_count=prod.stock_count - line.qty)

        await _save_products(conn, (by_pid[p.pid] for p in products))
        await write_key(
            conn, INVOICES_KEY, [inv.to_dict() for inv in [invoice, *invoices]]
        )

    cart.clear()
    _logger.info(
        f"Invoice {invoice.ino} created: {invoice.units} units, total {invoice.total:.2f}"
    )
    return invoice


async def void_invoice(ino: str) -> models.Invoice:
    """
    Void an invoice and restore the stock of every line. A Void invoice cannot be
    voided again, so stock is restored exactly once.
    """
    async with transaction() as conn:
        invoices = await _load_invoices(conn)
        idx = next((i for i, inv in enumerate(invoices) if inv.ino == ino), None)
        if idx is None:
            raise NotFoundError(f"Invoice {ino} not found.")
        invoice = invoices[idx]
        if invoice.is_void:
            raise ValidationError(f"Invoice {ino} is already void.")

        products = await _load_products(conn)
        by_pid = {p.pid: p for p in products}
        for line in invoice.lines:
            prod = by_pid.get(line.pid)
            if prod is None:
                _logger.warning(
                    f"Voiding {ino}: product {line.pid} no longer exists, stock not restored"
                )
                continue
            by_pid[line.pid] = replace(prod, stock_count=prod.stock_count + line.qty)

        voided = replace(invoice, status="Void")
        invoices[idx] = voided
        await _save_products(conn, (by_pid[p.pid] for p in products))
        await write_key(conn, INVOICES_KEY, [inv.to_dict() for inv in invoices])

    _logger.info(f"Invoice {ino} voided, stock restored")
    return voided


async def list_invoices() -> List[models.Invoice]:
    """Invoice ledger, newest first."""
    async with connect() as conn:
        return await _load_invoices(conn)


async def get_invoice(ino: str) -> Optional[models.Invoice]:
    for inv in await list_invoices():
        if inv.ino == ino:
            return inv
    return None


def convert_total(total: float, rate: float) -> Optional[float]:
    """Total expressed in local currency; None when no usable rate is set."""
    if not rate or rate <= 0:
        return None
    return round(total * rate, 2)


# ---------------------------
# Offers
# ---------------------------


async def list_offers() -> List[models.Offer]:
    async with connect() as conn:
        return await _load_offers(conn)


def find_active_offer(
    pid: str, offers: Iterable[models.Offer], now: Optional[datetime] = None
) -> Optional[models.Offer]:
    """First Active offer for the product, in registry order."""
    now = now or datetime.now()
    for offer in offers:
        if offer.pid == pid and offer.is_active(now):
            return offer
    return None


def effective_price(
    product: models.Product,
    offers: Iterable[models.Offer],
    now: Optional[datetime] = None,
) -> float:
    offer = find_active_offer(product.pid, offers, now)
    return offer.discount_price if offer else product.price


async def save_offer(
    pid: str,
    discount_price: float,
    start_date: datetime,
    end_date: datetime,
    descr: str,
    oid: Optional[str] = None,
) -> models.Offer:
    """
    Create an offer, or edit the one with `oid`. The discount price must be below the
    product's price as it stands when the offer is saved.
    """
    descr = (descr or "").strip()
    if (
        discount_price is None
        or not math.isfinite(discount_price)
        or discount_price <= 0
    ):
        raise ValidationError("Offer price must be greater than zero.")
    if end_date < start_date:
        raise ValidationError("Offer end date must not precede its start date.")
    if len(descr) < 5:
        raise ValidationError("Description must be at least 5 characters.")

    async with transaction() as conn:
        products = await _load_products(conn)
        prod = next((p for p in products if p.pid == str(pid)), None)
        if prod is None:
            raise ValidationError("Select an existing product.")
        if discount_price >= prod.price:
            raise ValidationError(
                f"Offer price must be lower than the original ${prod.price:.2f}."
            )

        offers = await _load_offers(conn)
        offer = models.Offer(
            oid=oid or str(uuid.uuid4()),
            pid=prod.pid,
            discount_price=float(discount_price),
            start_date=start_date,
            end_date=end_date,
            descr=descr,
        )
        if oid is None:
            offers.append(offer)
        else:
            idx = next((i for i, o in enumerate(offers) if o.oid == oid), None)
            if idx is None:
                raise NotFoundError(f"Offer {oid} not found.")
            offers[idx] = offer
        await write_key(conn, OFFERS_KEY, [o.to_dict() for o in offers])

    _logger.info(
        f"Offer {offer.oid} {'updated' if oid else 'created'} for '{prod.name}' at {offer.discount_price:.2f}"
    )
    return offer


async def delete_offer(oid: str) -> None:
    async with transaction() as conn:
        offers = await _load_offers(conn)
        remaining = [o for o in offers if o.oid != oid]
        if len(remaining) == len(offers):
            raise NotFoundError(f"Offer {oid} not found.")
        await write_key(conn, OFFERS_KEY, [o.to_dict() for o in remaining])
    _logger.info(f"Offer {oid} deleted")


async def active_offers(
    now: Optional[datetime] = None,
) -> List[Tuple[models.Offer, models.Product]]:
    """Active offers with their product; products out of stock are left out."""
    now = now or datetime.now()
    async with connect() as conn:
        offers = await _load_offers(conn)
        products = {p.pid: p for p in await _load_products(conn)}
    result = []
    for offer in offers:
        prod = products.get(offer.pid)
        if offer.is_active(now) and prod and prod.stock_count > 0:
            result.append((offer, prod))
    return result


# ---------------------------
# Auth & Registration
# ---------------------------


async def email_available(email: str) -> bool:
    """True if no account is registered with the given email."""
    async with connect() as conn:
        stored = await read_key(conn, user_key(_normalize_email(email)))
    return stored.status == "empty"


async def register_user(
    name: str,
    email: str,
    pwd: str,
    role: str = "Customer",
    secret_key: Optional[str] = None,
    size: Optional[str] = None,
    gender: Optional[str] = None,
    when: Optional[datetime] = None,
) -> models.User:
    """
    Create an active account and sign it in. Employee and Administrator accounts
    need the role's secret key.
    """
    name = (name or "").strip()
    email = _normalize_email(email)
    if len(name) < 2:
        raise ValidationError("Name must be at least 2 characters.")
    if not _EMAIL_RE.match(email):
        raise ValidationError("Enter a valid email address.")
    if len(pwd or "") < 6:
        raise ValidationError("Password must be at least 6 characters.")
    if role not in models.ROLES:
        raise ValidationError(f"Unknown role '{role}'.")
    if role in ROLE_SECRET_KEYS and secret_key != ROLE_SECRET_KEYS[role]:
        raise ValidationError(f"Incorrect {role.lower()} key.")
    if gender is not None and gender not in models.GENDERS:
        raise ValidationError(f"Unknown gender '{gender}'.")

    user = models.User(
        uid=uuid.uuid4().hex,
        name=name,
        email=email,
        role=role,
        pwd_hash=hash_password(pwd),
        status="active",
        last_login=when or datetime.now(),
        size=(size or "").strip() or None,
        gender=gender,
    )
    async with transaction() as conn:
        existing = await read_key(conn, user_key(email))
        if existing.status != "empty":
            raise ValidationError("Email already registered.")
        await write_key(conn, user_key(email), user.to_dict())
        await write_key(conn, SESSION_KEY, {"email": email})
    _logger.info(f"Registered {role} account {email}")
    return user


async def login(email: str, pwd: str, when: Optional[datetime] = None) -> models.User:
    """
    Start a session. Blocked accounts are refused and no session is created.
    Stamps last_login on the account record.
    """
    email = _normalize_email(email)
    async with transaction() as conn:
        user = await _load_user(conn, email)
        if user is None or not check_password(pwd or "", user.pwd_hash):
            raise AuthError("Invalid email or password.")
        if user.is_blocked:
            raise AuthError(
                "Your account has been blocked by an administrator. Contact us for details."
            )
        user = replace(user, last_login=when or datetime.now())
        await write_key(conn, user_key(email), user.to_dict())
        await write_key(conn, SESSION_KEY, {"email": email})
    _logger.info(f"{user.role} {email} logged in")
    return user


async def logout() -> None:
    """
    End the session; a customer's favorites go with it. An unreadable session
    pointer is removed as well, so logging out always succeeds.
    """
    async with transaction() as conn:
        pointer = await read_key(conn, SESSION_KEY)
        if pointer.ok and isinstance(pointer.value, dict):
            stored = await read_key(conn, user_key(pointer.value.get("email", "")))
            if stored.ok and isinstance(stored.value, dict):
                user = models.User.from_dict(stored.value)
                if user.role == "Customer":
                    await delete_key(conn, favorites_key(user.uid))
        elif pointer.status == "corrupt":
            _logger.warning("Removing an unreadable session pointer at logout")
        await delete_key(conn, SESSION_KEY)


async def current_user() -> Optional[models.User]:
    """The signed-in account, read from the directory rather than a session copy."""
    async with connect() as conn:
        pointer = (await read_key(conn, SESSION_KEY)).unwrap(None)
        if not pointer:
            return None
        return await _load_user(conn, pointer.get("email", ""))


async def restore_session() -> Optional[models.User]:
    """
    Resume the session a previous run left open. The session is dropped instead when
    the account has been blocked or removed since, or when the pointer or the account
    record can't be parsed; the account record itself is never touched.
    Raises CorruptStateError after dropping a session it could not read.
    """
    corrupt_key = None
    async with transaction() as conn:
        pointer = await read_key(conn, SESSION_KEY)
        if pointer.status == "empty":
            return None

        user = None
        if pointer.status == "corrupt":
            corrupt_key = pointer.key
        elif isinstance(pointer.value, dict):
            stored = await read_key(conn, user_key(pointer.value.get("email", "")))
            if stored.status == "corrupt":
                corrupt_key = stored.key
            elif stored.ok and isinstance(stored.value, dict):
                user = models.User.from_dict(stored.value)

        if user is not None and not user.is_blocked:
            return user
        await delete_key(conn, SESSION_KEY)

    if corrupt_key:
        _logger.warning(f"Dropped the saved session, '{corrupt_key}' is unreadable")
        raise CorruptStateError(
            corrupt_key, "The saved session could not be read. Please log in again."
        )
    _logger.info("Dropped the saved session of a blocked or missing account")
    return None


async def get_user(email: str) -> Optional[models.User]:
    async with connect() as conn:
        return await _load_user(conn, _normalize_email(email))


async def list_users() -> List[models.User]:
    async with connect() as conn:
        users = []
        for key in await keys_with_prefix(conn, USER_KEY_PREFIX):
            data = (await read_key(conn, key)).unwrap(None)
            if data:
                users.append(models.User.from_dict(data))
    return users


async def search_users(term: str) -> List[models.User]:
    """Accounts whose name, email or role contains `term` (case-insensitive)."""
    term = (term or "").strip().lower()
    users = await list_users()
    if not term:
        return users
    return [
        u
        for u in users
        if term in u.name.lower() or term in u.email.lower() or term in u.role.lower()
    ]


async def set_user_status(email: str, status: str) -> models.User:
    """Block or unblock an account."""
    if status not in ("active", "blocked"):
        raise ValidationError(f"Unknown account status '{status}'.")
    email = _normalize_email(email)
    async with transaction() as conn:
        user = await _load_user(conn, email)
        if user is None:
            raise NotFoundError(f"No account for {email}.")
        user = replace(user, status=status)
        await write_key(conn, user_key(email), user.to_dict())
    _logger.info(f"Account {email} set to {status}")
    return user


# ---------------------------
# Favorites
# ---------------------------


async def list_favorites() -> List[str]:
    user = await current_user()
    if user is None or user.role != "Customer":
        return []
    async with connect() as conn:
        return list((await read_key(conn, favorites_key(user.uid))).unwrap([]))


async def toggle_favorite(pid: str) -> List[str]:
    """Add or remove a favorite; only customers keep favorites."""
    user = await current_user()
    if user is None or user.role != "Customer":
        return []
    async with transaction() as conn:
        favorites = list((await read_key(conn, favorites_key(user.uid))).unwrap([]))
        if pid in favorites:
            favorites.remove(pid)
        else:
            favorites.append(pid)
        await write_key(conn, favorites_key(user.uid), favorites)
    return favorites


async def is_favorite(pid: str) -> bool:
    return pid in await list_favorites()


# ---------------------------
# Support Requests
# ---------------------------


async def submit_support_request(
    uid: str, reason: str, message: str, when: Optional[date] = None
) -> models.SupportRequest:
    message = (message or "").strip()
    if reason not in models.SUPPORT_REASONS or not message:
        raise ValidationError("Select a reason and write your message.")
    request = models.SupportRequest(
        rid=str(uuid.uuid4()),
        created=when or date.today(),
        reason=reason,
        message=message,
    )
    async with transaction() as conn:
        history = (await read_key(conn, support_key(uid))).unwrap([])
        history.append(request.to_dict())
        await write_key(conn, support_key(uid), history)
    _logger.info(f"Support request {request.rid} ({reason}) filed by {uid}")
    return request


async def list_support_requests(uid: str) -> List[models.SupportRequest]:
    async with connect() as conn:
        history = (await read_key(conn, support_key(uid))).unwrap([])
    return [models.SupportRequest.from_dict(d) for d in history]


# ---------------------------
# Dashboard
# ---------------------------


async def sales_summary() -> Dict[str, float]:
    """
    Store-wide figures for the back-office dashboard.
    Returns a dict with numeric values.
    """
    invoices = await list_invoices()
    products = await list_products()
    users = await list_users()
    paid = [inv for inv in invoices if inv.status == "Paid"]
    return {
        "paid_invoices": len(paid),
        "void_invoices": sum(1 for inv in invoices if inv.is_void),
        "total_sales_amount": sum(inv.total for inv in paid),
        "units_sold": sum(inv.units for inv in paid),
        "products_in_stock": sum(1 for p in products if p.stock_count > 0),
        "customers": sum(1 for u in users if u.role == "Customer"),
        "catalog_visits": await catalog_visits(),
    }


async def top_products_by_units(
    k: int = 3,
    include_ties_at_k: bool = True,
) -> List[Tuple[str, str, int]]:
    """
    Return best sellers over Paid invoices: [(pid, name, units), ...]
    If include_ties_at_k is True, include all products tied at the kth position.
    """
    units: Dict[str, int] = {}
    names: Dict[str, str] = {}
    for inv in await list_invoices():
        if inv.status != "Paid":
            continue
        for line in inv.lines:
            units[line.pid] = units.get(line.pid, 0) + line.qty
            names.setdefault(line.pid, line.name)
    rows = sorted(units.items(), key=lambda r: (-r[1], r[0]))
    if not rows:
        return []
    if not include_ties_at_k:
        rows = rows[:k]
    else:
        if k < 1:
            return []
        threshold = rows[min(k, len(rows)) - 1][1]
        rows = [r for r in rows if r[1] >= threshold]
    return [(pid, names[pid], cnt) for pid, cnt in rows]
