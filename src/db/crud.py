from __future__ import annotations

import dataclasses
import json
import random
import string
import time
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple

from db import models
from db.database import connect, transaction
from rental import order_status, workflow
from rental.errors import (
    InvalidTransitionError,
    OrderNotFoundError,
    ProductNotFoundError,
    ValidationError,
)
from utils.logger import get_logger

_logger = get_logger(__name__)

_ORDER_COLUMNS = """
    o.id, o.order_number, o.cid, c.name, c.email, o.status, o.delivery_method,
    o.payment_method, o.billing_address, o.delivery_address, o.subtotal,
    o.tax_amount, o.delivery_charge, o.discount_amount, o.total_amount,
    o.applied_coupon, o.notes, o.created_at
"""


def _dump_address(address: models.Address) -> str:
    return json.dumps(dataclasses.asdict(address))


def _load_address(raw: Optional[str]) -> models.Address:
    if not raw:
        return models.Address()
    return models.Address(**json.loads(raw))


# ---------------------------
# Customers
# ---------------------------


async def list_customers() -> List[models.Customer]:
    """All demo customer accounts ordered by cid."""
    async with connect() as conn:
        cur = await conn.execute("SELECT cid, name, email, phone FROM customers ORDER BY cid;")
        rows = await cur.fetchall()
        await cur.close()
    return [models.Customer(cid=r[0], name=r[1], email=r[2], phone=r[3]) for r in rows]


async def get_customer(cid: int) -> Optional[models.Customer]:
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT cid, name, email, phone FROM customers WHERE cid = ?;", (cid,)
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return models.Customer(cid=row[0], name=row[1], email=row[2], phone=row[3])


# ---------------------------
# Catalog
# ---------------------------


async def _pricing_rules(conn, pids: Iterable[int]) -> Dict[int, Tuple[models.PricingRule, ...]]:
    pids = list(pids)
    if not pids:
        return {}
    placeholders = ", ".join("?" * len(pids))
    cur = await conn.execute(
        f"""
        SELECT pid, pricing_type, base_price, is_active
        FROM pricing_rules
        WHERE pid IN ({placeholders})
        ORDER BY pid, rule_no;
        """,
        tuple(pids),
    )
    rows = await cur.fetchall()
    await cur.close()
    rules: Dict[int, List[models.PricingRule]] = {pid: [] for pid in pids}
    for row in rows:
        rules[row[0]].append(
            models.PricingRule(
                pricing_type=row[1], base_price=float(row[2]), is_active=bool(row[3])
            )
        )
    return {pid: tuple(r) for pid, r in rules.items()}


def _row_to_product(row, rules: Dict[int, Tuple[models.PricingRule, ...]]) -> models.Product:
    return models.Product(
        pid=row[0],
        name=row[1],
        category=row[2],
        stock_count=int(row[3]),
        replacement_value=float(row[4]),
        descr=row[5],
        pricing_rules=rules.get(row[0], ()),
    )


# a product's daily rate, as models.Product.unit_price picks it
_DAILY_RATE_SQL = """
    COALESCE(
        (SELECT r.base_price FROM pricing_rules r
         WHERE r.pid = p.pid AND r.is_active = 1 AND r.pricing_type = 'daily'
         ORDER BY r.rule_no LIMIT 1),
        (SELECT r.base_price FROM pricing_rules r
         WHERE r.pid = p.pid AND r.is_active = 1
         ORDER BY r.rule_no LIMIT 1),
        0
    )
"""
_PRODUCTS_WITH_RATE = f"(SELECT p.*, {_DAILY_RATE_SQL} AS rate FROM products p)"

_SORT_COLUMNS = {"pid": "pid", "name": "LOWER(name)", "price": "rate"}
_SORT_ORDERS = {"asc": "ASC", "desc": "DESC"}


def _like_pattern(word: str) -> str:
    """%word% with LIKE wildcards in word matched literally (ESCAPE '\\')."""
    escaped = word.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


async def list_categories() -> List[str]:
    """Distinct product categories, alphabetically."""
    async with connect() as conn:
        cur = await conn.execute("SELECT DISTINCT category FROM products ORDER BY category;")
        rows = await cur.fetchall()
        await cur.close()
    return [r[0] for r in rows]


async def search_products(
    query: str,
    page: int = 1,
    page_size: int = 10,
    category: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    sort_by: str = "pid",
    sort_order: str = "asc",
) -> Tuple[List[models.Product], int]:
    """
    Case-insensitive search over name, category and description.
    An empty query lists the whole catalog. Multiple words match if any
    word matches. Returns (products for page, total_count).

    category filters on an exact (case-insensitive) category name, min_price
    and max_price bound the daily rate. sort_by is "pid", "name" or "price",
    sort_order "asc" or "desc".
    """
    if sort_by not in _SORT_COLUMNS:
        raise ValidationError(f"Cannot sort products by '{sort_by}'.")
    if sort_order not in _SORT_ORDERS:
        raise ValidationError(f"Unknown sort order '{sort_order}'.")

    conditions: List[str] = []
    params: List[str | int | float] = []

    words = [w for w in (query or "").strip().lower().split() if w]
    if words:
        conditions.append(
            "("
            + " OR ".join(
                [
                    "(LOWER(name) LIKE ? ESCAPE '\\' OR LOWER(category) LIKE ? ESCAPE '\\'"
                    " OR LOWER(descr) LIKE ? ESCAPE '\\')"
                ]
                * len(words)
            )
            + ")"
        )
        for w in words:
            like = _like_pattern(w)
            params.extend([like, like, like])

    if category:
        conditions.append("LOWER(category) = LOWER(?)")
        params.append(category)
    if min_price is not None:
        conditions.append("rate >= ?")
        params.append(min_price)
    if max_price is not None:
        conditions.append("rate <= ?")
        params.append(max_price)

    where_clause = " AND ".join(conditions) or "1 = 1"
    order_clause = f"{_SORT_COLUMNS[sort_by]} {_SORT_ORDERS[sort_order]}, pid"

    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT COUNT(*) FROM {_PRODUCTS_WITH_RATE} WHERE {where_clause};",
            tuple(params),
        )
        total = (await cur.fetchone())[0]
        await cur.close()

        offset = max(page - 1, 0) * page_size
        cur = await conn.execute(
            f"""
            SELECT pid, name, category, stock_count, replacement_value, descr
            FROM {_PRODUCTS_WITH_RATE}
            WHERE {where_clause}
            ORDER BY {order_clause}
            LIMIT ? OFFSET ?;
            """,
            tuple(params + [page_size, offset]),
        )
        rows = await cur.fetchall()
        await cur.close()
        rules = await _pricing_rules(conn, (row[0] for row in rows))

    return [_row_to_product(row, rules) for row in rows], total


async def get_product(pid: int) -> Optional[models.Product]:
    """Fetch a product with its pricing rules by pid."""
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT pid, name, category, stock_count, replacement_value, descr
            FROM products WHERE pid = ?;
            """,
            (pid,),
        )
        row = await cur.fetchone()
        await cur.close()
        if not row:
            return None
        rules = await _pricing_rules(conn, [pid])
    return _row_to_product(row, rules)


async def update_product(
    pid: int,
    name: Optional[str] = None,
    category: Optional[str] = None,
    descr: Optional[str] = None,
    replacement_value: Optional[float] = None,
    daily_rate: Optional[float] = None,
) -> models.Product:
    """
    Vendor edit of a product; only the given fields change.

    daily_rate rewrites the product's first active daily pricing rule, or
    adds one when the product has none. Raises ProductNotFoundError or
    ValidationError.
    """
    changes: Dict[str, object] = {}
    if name is not None:
        if not name.strip():
            raise ValidationError("Product name cannot be empty.")
        changes["name"] = name.strip()
    if category is not None:
        if not category.strip():
            raise ValidationError("Category cannot be empty.")
        changes["category"] = category.strip()
    if descr is not None:
        changes["descr"] = descr.strip()
    if replacement_value is not None:
        if replacement_value < 0:
            raise ValidationError("Replacement value cannot be negative.")
        changes["replacement_value"] = replacement_value
    if daily_rate is not None and daily_rate < 0:
        raise ValidationError("Daily rate cannot be negative.")

    async with transaction() as conn:
        cur = await conn.execute("SELECT 1 FROM products WHERE pid = ?;", (pid,))
        exists = await cur.fetchone()
        await cur.close()
        if not exists:
            raise ProductNotFoundError(pid)

        if changes:
            assignments = ", ".join(f"{column} = ?" for column in changes)
            await conn.execute(
                f"UPDATE products SET {assignments} WHERE pid = ?;",
                tuple(changes.values()) + (pid,),
            )

        if daily_rate is not None:
            cur = await conn.execute(
                """
                UPDATE pricing_rules SET base_price = ?
                WHERE pid = ? AND rule_no = (
                    SELECT rule_no FROM pricing_rules
                    WHERE pid = ? AND is_active = 1 AND pricing_type = 'daily'
                    ORDER BY rule_no LIMIT 1
                );
                """,
                (daily_rate, pid, pid),
            )
            if cur.rowcount == 0:
                await conn.execute(
                    """
                    INSERT INTO pricing_rules(pid, rule_no, pricing_type, base_price, is_active)
                    SELECT ?, COALESCE(MAX(rule_no), 0) + 1, 'daily', ?, 1
                    FROM pricing_rules WHERE pid = ?;
                    """,
                    (pid, daily_rate, pid),
                )
            await cur.close()

    if daily_rate is not None:
        changes["daily_rate"] = daily_rate
    _logger.info(f"Product {pid} updated: {changes}")
    return await get_product(pid)


async def update_stock(pid: int, stock_count: int) -> models.Product:
    """Set how many units of a product are on hand."""
    if stock_count < 0:
        raise ValidationError("Stock cannot be negative.")
    async with connect() as conn:
        cur = await conn.execute(
            "UPDATE products SET stock_count = ? WHERE pid = ?;", (stock_count, pid)
        )
        updated = cur.rowcount
        await cur.close()
        await conn.commit()
    if not updated:
        raise ProductNotFoundError(pid)
    _logger.info(f"Product {pid} stock set to {stock_count}")
    return await get_product(pid)


# ---------------------------
# Cart & Wishlist
# ---------------------------


async def load_cart(cid: int) -> List[models.CartLineItem]:
    """Cart line items for a customer in the order they were added."""
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT pid, name, unit_price, qty, rental_start, rental_end
            FROM cart WHERE cid = ? ORDER BY line_no;
            """,
            (cid,),
        )
        rows = await cur.fetchall()
        await cur.close()
    items = []
    for row in rows:
        dates = models.RentalDates(
            start=date.fromisoformat(row[4]), end=date.fromisoformat(row[5])
        )
        items.append(
            models.CartLineItem(
                id=f"{row[0]}-{row[4]}-{row[5]}",
                product=models.ProductRef(pid=row[0], name=row[1], unit_price=float(row[2])),
                quantity=int(row[3]),
                rental_dates=dates,
            )
        )
    return items


async def save_cart(cid: int, items: Iterable[models.CartLineItem]) -> None:
    """Replace the stored cart with the given line items."""
    async with connect() as conn:
        await conn.execute("DELETE FROM cart WHERE cid = ?;", (cid,))
        await conn.executemany(
            """
            INSERT INTO cart(cid, line_no, pid, name, unit_price, qty, rental_start, rental_end)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            [
                (
                    cid,
                    line_no,
                    item.product.pid,
                    item.product.name,
                    item.product.unit_price,
                    item.quantity,
                    item.rental_dates.start.isoformat(),
                    item.rental_dates.end.isoformat(),
                )
                for line_no, item in enumerate(items, start=1)
            ],
        )
        await conn.commit()


async def load_wishlist(cid: int) -> List[models.WishlistEntry]:
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT pid, name, unit_price, added_at FROM wishlist WHERE cid = ? ORDER BY added_at;",
            (cid,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.WishlistEntry(
            pid=row[0],
            name=row[1],
            unit_price=float(row[2]),
            added_at=datetime.fromisoformat(row[3]),
        )
        for row in rows
    ]


async def save_wishlist(cid: int, entries: Iterable[models.WishlistEntry]) -> None:
    async with connect() as conn:
        await conn.execute("DELETE FROM wishlist WHERE cid = ?;", (cid,))
        await conn.executemany(
            "INSERT INTO wishlist(cid, pid, name, unit_price, added_at) VALUES (?, ?, ?, ?, ?);",
            [(cid, e.pid, e.name, e.unit_price, e.added_at.isoformat()) for e in entries],
        )
        await conn.commit()


# ---------------------------
# Orders
# ---------------------------


def _random_suffix(k: int = 5) -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=k))


async def place_order(
    cid: int, request: models.OrderRequest, when: Optional[datetime] = None
) -> str:
    """
    Store a new pending order built from a checkout request and return its id.
    """
    when = when or datetime.now()
    async with connect() as conn:
        # pick unique id / order number
        while True:
            now_ms = time.time_ns() // 1_000_000
            order_id = f"order_{now_ms}_{_random_suffix()}"
            order_number = f"ORD-{now_ms}-{_random_suffix().upper()}"
            cur = await conn.execute(
                "SELECT 1 FROM orders WHERE id = ? OR order_number = ?;",
                (order_id, order_number),
            )
            exists = await cur.fetchone()
            await cur.close()
            if not exists:
                break

        await conn.execute(
            """
            INSERT INTO orders(id, order_number, cid, status, delivery_method, payment_method,
                               billing_address, delivery_address, subtotal, tax_amount,
                               delivery_charge, discount_amount, total_amount, applied_coupon,
                               notes, created_at)
            VALUES (?, ?, ?, 'pending', ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                order_id,
                order_number,
                cid,
                request.delivery_method,
                request.payment_method,
                _dump_address(request.billing_address),
                _dump_address(request.delivery_address),
                request.subtotal,
                request.tax_amount,
                request.delivery_charge,
                request.discount_amount,
                request.total_amount,
                request.applied_coupon,
                request.notes,
                when.isoformat(),
            ),
        )
        await conn.executemany(
            """
            INSERT INTO order_items(order_id, line_no, pid, product_name, qty, unit_price,
                                    rental_start, rental_end)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            [
                (
                    order_id,
                    line_no,
                    item.pid,
                    item.product_name,
                    item.quantity,
                    item.unit_price,
                    item.rental_start.isoformat(),
                    item.rental_end.isoformat(),
                )
                for line_no, item in enumerate(request.items, start=1)
            ],
        )
        await conn.execute(
            "INSERT INTO order_history(order_id, ts, action, details) VALUES (?, ?, ?, ?);",
            (
                order_id,
                when.isoformat(),
                "Order created",
                f"Items: {len(request.items)}, Total: {request.total_amount:.2f}",
            ),
        )
        await conn.commit()

    _logger.info(
        f"Order {order_number} placed by customer {cid}: "
        f"{len(request.items)} items, total {request.total_amount:.2f}"
    )
    return order_id


async def _fetch_orders(conn, where: str, params: tuple) -> List[models.Order]:
    cur = await conn.execute(
        f"""
        SELECT {_ORDER_COLUMNS}
        FROM orders o JOIN customers c ON c.cid = o.cid
        {where}
        ORDER BY o.created_at DESC;
        """,
        params,
    )
    rows = await cur.fetchall()
    await cur.close()
    if not rows:
        return []

    ids = [row[0] for row in rows]
    placeholders = ", ".join("?" * len(ids))
    cur = await conn.execute(
        f"""
        SELECT order_id, pid, product_name, qty, unit_price, rental_start, rental_end
        FROM order_items
        WHERE order_id IN ({placeholders})
        ORDER BY order_id, line_no;
        """,
        tuple(ids),
    )
    item_rows = await cur.fetchall()
    await cur.close()

    items: Dict[str, List[models.OrderItem]] = {oid: [] for oid in ids}
    for r in item_rows:
        items[r[0]].append(
            models.OrderItem(
                pid=r[1],
                product_name=r[2],
                quantity=int(r[3]),
                unit_price=float(r[4]),
                rental_start=date.fromisoformat(r[5]),
                rental_end=date.fromisoformat(r[6]),
            )
        )

    return [
        models.Order(
            id=row[0],
            order_number=row[1],
            cid=row[2],
            customer_name=row[3],
            customer_email=row[4],
            items=tuple(items[row[0]]),
            status=row[5],
            delivery_method=row[6],
            payment_method=row[7],
            billing_address=_load_address(row[8]),
            delivery_address=_load_address(row[9]),
            subtotal=float(row[10]),
            tax_amount=float(row[11]),
            delivery_charge=float(row[12]),
            discount_amount=float(row[13]),
            total_amount=float(row[14]),
            applied_coupon=row[15],
            notes=row[16],
            created_at=datetime.fromisoformat(row[17]),
        )
        for row in rows
    ]


async def list_orders(cid: Optional[int] = None) -> List[models.Order]:
    """
    Orders newest first; all of them for the vendor, or one customer's if cid is given.
    """
    async with connect() as conn:
        if cid is None:
            return await _fetch_orders(conn, "", ())
        return await _fetch_orders(conn, "WHERE o.cid = ?", (cid,))


async def get_order(order_id: str) -> Optional[models.Order]:
    async with connect() as conn:
        orders = await _fetch_orders(conn, "WHERE o.id = ?", (order_id,))
    return orders[0] if orders else None


async def update_order_status(
    order_id: str,
    new_status: str,
    strict: bool = True,
    when: Optional[datetime] = None,
) -> models.Order:
    """
    Apply a status change through the order status workflow and store it.

    The check and the write happen in one transaction, and the write only
    lands if the status is still the one that was checked. Raises
    OrderNotFoundError or InvalidTransitionError; nothing is written when
    the transition is refused.
    """
    when = when or datetime.now()
    async with transaction() as conn:
        orders = await _fetch_orders(conn, "WHERE o.id = ?", (order_id,))
        if not orders:
            raise OrderNotFoundError(order_id)
        order = orders[0]

        updated = order_status.change_status(order, new_status, strict=strict)
        cur = await conn.execute(
            "UPDATE orders SET status = ? WHERE id = ? AND status = ?;",
            (updated.status, order_id, order.status),
        )
        changed = cur.rowcount
        await cur.close()
        if changed == 0:
            raise InvalidTransitionError(order.status, new_status)

        await conn.execute(
            "INSERT INTO order_history(order_id, ts, action, details) VALUES (?, ?, ?, ?);",
            (
                order_id,
                when.isoformat(),
                "Status updated",
                f"Status changed from {order.status} to {updated.status}",
            ),
        )

    _logger.info(f"Order {order.order_number}: {order.status} -> {updated.status}")
    return updated


async def update_order_notes(
    order_id: str, notes: str, when: Optional[datetime] = None
) -> models.Order:
    order = await get_order(order_id)
    if order is None:
        raise OrderNotFoundError(order_id)

    when = when or datetime.now()
    async with connect() as conn:
        await conn.execute("UPDATE orders SET notes = ? WHERE id = ?;", (notes, order_id))
        await conn.execute(
            "INSERT INTO order_history(order_id, ts, action, details) VALUES (?, ?, ?, ?);",
            (order_id, when.isoformat(), "Notes updated", notes),
        )
        await conn.commit()
    return dataclasses.replace(order, notes=notes)


async def list_order_history(order_id: str) -> List[models.OrderEvent]:
    """Events of an order, oldest first."""
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT order_id, ts, action, details
            FROM order_history WHERE order_id = ?
            ORDER BY ts, rowid;
            """,
            (order_id,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.OrderEvent(
            order_id=r[0], ts=datetime.fromisoformat(r[1]), action=r[2], details=r[3]
        )
        for r in rows
    ]


# ---------------------------
# Rental Orders (Vendor)
# ---------------------------


async def _load_rental_order(conn, order_id: str) -> Optional[models.RentalOrder]:
    cur = await conn.execute(
        """
        SELECT id, stage, customer, invoice_address, delivery_address, order_date,
               price_list, terms
        FROM rental_orders WHERE id = ?;
        """,
        (order_id,),
    )
    row = await cur.fetchone()
    await cur.close()
    if not row:
        return None
    cur = await conn.execute(
        """
        SELECT line_id, pid, product_name, qty, list_price, unit_price, tax
        FROM rental_order_lines WHERE order_id = ? ORDER BY line_id;
        """,
        (order_id,),
    )
    line_rows = await cur.fetchall()
    await cur.close()

    lines = tuple(
        models.OrderLine(
            line_id=r[0],
            product_id=r[1],
            product_name=r[2],
            quantity=int(r[3]),
            list_price=float(r[4]),
            unit_price=float(r[5]),
            tax=float(r[6]),
        )
        for r in line_rows
    )
    return models.RentalOrder(
        id=row[0],
        order_lines=lines,
        stage=row[1],
        customer=row[2],
        invoice_address=row[3],
        delivery_address=row[4],
        order_date=date.fromisoformat(row[5]),
        price_list=row[6],
        terms=row[7],
    )


async def save_rental_order(order: models.RentalOrder) -> None:
    """
    Insert or replace a rental order together with its lines.

    The stored copy is checked first, in the same transaction: the stage
    may only move forward, and a confirmed or cancelled order keeps its
    lines and prices. Raises InvalidTransitionError or PermissionDeniedError
    and writes nothing when the check fails.
    """
    async with transaction() as conn:
        stored = await _load_rental_order(conn, order.id)
        workflow.check_replacement(stored, order)

        await conn.execute(
            """
            INSERT INTO rental_orders(id, stage, customer, invoice_address, delivery_address,
                                      order_date, price_list, terms)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                stage = excluded.stage,
                customer = excluded.customer,
                invoice_address = excluded.invoice_address,
                delivery_address = excluded.delivery_address,
                order_date = excluded.order_date,
                price_list = excluded.price_list,
                terms = excluded.terms;
            """,
            (
                order.id,
                order.stage,
                order.customer,
                order.invoice_address,
                order.delivery_address,
                order.order_date.isoformat(),
                order.price_list,
                order.terms,
            ),
        )
        await conn.execute("DELETE FROM rental_order_lines WHERE order_id = ?;", (order.id,))
        await conn.executemany(
            """
            INSERT INTO rental_order_lines(order_id, line_id, pid, product_name, qty,
                                           list_price, unit_price, tax)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            [
                (
                    order.id,
                    line.line_id,
                    line.product_id,
                    line.product_name,
                    line.quantity,
                    line.list_price,
                    line.unit_price,
                    line.tax,
                )
                for line in order.order_lines
            ],
        )
    _logger.info(f"Rental order {order.id} saved ({order.stage}, total {order.total:.2f})")


async def get_rental_order(order_id: str) -> Optional[models.RentalOrder]:
    async with connect() as conn:
        return await _load_rental_order(conn, order_id)


async def list_rental_orders() -> List[Tuple[str, str, str]]:
    """(id, customer, stage) of every rental order, newest id first."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT id, customer, stage FROM rental_orders ORDER BY order_date DESC, id DESC;"
        )
        rows = await cur.fetchall()
        await cur.close()
    return [(r[0], r[1], r[2]) for r in rows]


# ---------------------------
# Vendor Dashboard
# ---------------------------

# revenue of one order_items row: daily rate x quantity x rental days
_ITEM_REVENUE_SQL = """
    oi.qty * oi.unit_price
    * MAX(1, CAST(julianday(oi.rental_end) - julianday(oi.rental_start) AS INTEGER))
"""


def _top_k(
    rows: List[tuple], k: int, include_ties_at_k: bool = True
) -> Tuple[models.RankedEntry, ...]:
    """
    rows are (label, ordered, revenue) sorted best first. If include_ties_at_k
    is True, rows tied with the kth on the order count are kept as well.
    """
    if k < 1 or not rows:
        return ()
    if include_ties_at_k:
        threshold = rows[min(k, len(rows)) - 1][1]
        rows = [r for r in rows if r[1] >= threshold]
    else:
        rows = rows[:k]
    return tuple(
        models.RankedEntry(label=r[0], ordered=int(r[1]), revenue=float(r[2] or 0.0))
        for r in rows
    )


async def vendor_dashboard(
    since: Optional[date] = None, k: int = 3
) -> models.DashboardSummary:
    """
    Figures for the vendor dashboard.

    Customer orders count unless cancelled; rental orders add their total
    once confirmed. With since, only orders created (or rental orders dated)
    on or after that day are counted.
    """
    since_str = since.isoformat() if since else "0000-01-01"
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT
                COALESCE(SUM(stage IN ('quotation', 'quotation-sent')), 0),
                COALESCE(SUM(stage = 'rental-order'), 0)
            FROM rental_orders
            WHERE date(order_date) >= date(?);
            """,
            (since_str,),
        )
        quotations, rentals = await cur.fetchone()
        await cur.close()

        cur = await conn.execute(
            """
            SELECT COALESCE(SUM(l.qty * l.unit_price * (1 + l.tax / 100.0)), 0.0)
            FROM rental_order_lines l
            JOIN rental_orders r ON r.id = l.order_id
            WHERE r.stage = 'rental-order' AND date(r.order_date) >= date(?);
            """,
            (since_str,),
        )
        rental_revenue = (await cur.fetchone())[0]
        await cur.close()

        cur = await conn.execute(
            """
            SELECT COUNT(*), COALESCE(SUM(total_amount), 0.0)
            FROM orders
            WHERE status != 'cancelled' AND date(created_at) >= date(?);
            """,
            (since_str,),
        )
        order_cnt, order_revenue = await cur.fetchone()
        await cur.close()

        async def ranked(label_sql: str, joins: str) -> List[tuple]:
            cur = await conn.execute(
                f"""
                SELECT {label_sql} AS label,
                       COUNT(DISTINCT o.id) AS ordered,
                       SUM({_ITEM_REVENUE_SQL}) AS revenue
                FROM order_items oi
                JOIN orders o ON o.id = oi.order_id
                {joins}
                WHERE o.status != 'cancelled' AND date(o.created_at) >= date(?)
                GROUP BY label
                ORDER BY ordered DESC, revenue DESC, label;
                """,
                (since_str,),
            )
            rows = await cur.fetchall()
            await cur.close()
            return [tuple(r) for r in rows]

        by_category = await ranked(
            "COALESCE(p.category, 'Uncategorized')", "LEFT JOIN products p ON p.pid = oi.pid"
        )
        by_product = await ranked("oi.product_name", "")

        cur = await conn.execute(
            """
            SELECT c.name, COUNT(*) AS ordered, SUM(o.total_amount) AS revenue
            FROM orders o JOIN customers c ON c.cid = o.cid
            WHERE o.status != 'cancelled' AND date(o.created_at) >= date(?)
            GROUP BY c.cid
            ORDER BY ordered DESC, revenue DESC, c.name;
            """,
            (since_str,),
        )
        by_customer = [tuple(r) for r in await cur.fetchall()]
        await cur.close()

    return models.DashboardSummary(
        quotations=int(quotations),
        rentals=int(rentals),
        orders=int(order_cnt),
        revenue=float(order_revenue) + float(rental_revenue),
        top_categories=_top_k(by_category, k),
        top_products=_top_k(by_product, k),
        top_customers=_top_k(by_customer, k),
    )
