from datetime import date
from typing import List, Literal, Optional, Sequence

from rental.order_status import STATUS_LABELS
from rental.pricing import calculate_rental_duration
from rental.workflow import STAGE_LABELS

CURRENCY = "₹"


def generate_markdown_table(
    headers: Optional[Sequence[object]],
    rows: Sequence[Sequence[object]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: column headers, or None to use the first row as headers.
        rows: each row a sequence of cells, cells are passed through str().
        aligns: 'l', 'c' or 'r' per column, all centered by default.

    Returns:
        str: Markdown formatted table, empty if there are no rows.
    """
    if not rows:
        return ""

    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = [str(h) for h in headers]
    rows = [[str(cell).replace("|", "\\|") for cell in row] for row in rows]

    if aligns is None:
        aligns = ["c"] * len(headers)
    elif len(aligns) != len(headers):
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {"l": ":---", "c": ":---:", "r": "---:"}

    lines = [
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join(align_map[a] for a in aligns) + " |",
    ]
    lines += ["| " + " | ".join(row) + " |" for row in rows]
    return "\n".join(lines)


def format_money(amount: float) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}{CURRENCY}{abs(amount):,.2f}"


def parse_date(value: str) -> Optional[date]:
    """YYYY-MM-DD to date; None for blank or malformed input."""
    value = (value or "").strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def format_period(start: date, end: date) -> str:
    return f"{start.isoformat()} → {end.isoformat()}"


def render_order_markdown(order, history=()) -> str:
    """Markdown detail of a placed order, with its event history if given."""
    header = (
        f"### Order {order.order_number}\n\n"
        f"**Status:** {STATUS_LABELS.get(order.status, order.status)}  \n"
        f"**Customer:** {order.customer_name} ({order.customer_email})  \n"
        f"**Placed:** {order.created_at:%Y-%m-%d %H:%M}  \n"
        f"**Delivery:** {order.delivery_method.replace('_', ' ')}, "
        f"**Payment:** {order.payment_method.replace('_', ' ')}\n\n"
    )
    rows = []
    for item in order.items:
        days = calculate_rental_duration(item.rental_start, item.rental_end)
        rows.append(
            [
                item.product_name,
                format_period(item.rental_start, item.rental_end),
                days,
                item.quantity,
                format_money(item.unit_price),
                format_money(item.unit_price * item.quantity * days),
            ]
        )
    items_md = generate_markdown_table(
        ["Product", "Rental Period", "Days", "Qty", "Daily Rate", "Line Total"],
        rows,
        ["l", "c", "r", "r", "r", "r"],
    )
    amounts = [
        ["Subtotal", format_money(order.subtotal)],
        ["Tax", format_money(order.tax_amount)],
        ["Delivery", format_money(order.delivery_charge)],
    ]
    if order.discount_amount:
        coupon = f" ({order.applied_coupon})" if order.applied_coupon else ""
        amounts.append([f"Discount{coupon}", format_money(-order.discount_amount)])
    amounts.append(["**Total**", f"**{format_money(order.total_amount)}**"])
    amounts_md = generate_markdown_table(["", "Amount"], amounts, ["l", "r"])

    address = order.delivery_address
    md = header + items_md + "\n\n" + amounts_md
    md += (
        f"\n\n**Deliver to:** {address.full_name}, {address.street}, {address.city} "
        f"{address.postal_code}\n"
    )
    if order.notes:
        md += f"\n**Notes:** {order.notes}\n"
    if history:
        md += "\n#### History\n\n" + generate_markdown_table(
            ["When", "Action", "Details"],
            [[f"{e.ts:%Y-%m-%d %H:%M}", e.action, e.details] for e in history],
            ["l", "l", "l"],
        )
    return md


def render_rental_order_markdown(order, title: Optional[str] = None) -> str:
    """Printable view of a rental order."""
    title = title or f"Rental Order {order.id}"
    md = (
        f"## {title}\n\n"
        f"**Stage:** {STAGE_LABELS.get(order.stage, order.stage)}  \n"
        f"**Customer:** {order.customer or '-'}  \n"
        f"**Invoice Address:** {order.invoice_address or '-'}  \n"
        f"**Delivery Address:** {order.delivery_address or '-'}  \n"
        f"**Order Date:** {order.order_date.isoformat()}  \n"
        f"**Price List:** {order.price_list or '-'}\n\n"
    )
    md += generate_markdown_table(
        ["#", "Product", "Qty", "Unit Price", "Tax %", "Sub Total"],
        [
            [
                line.line_id,
                line.product_name or "-",
                line.quantity,
                format_money(line.unit_price),
                f"{line.tax:g}",
                format_money(line.subtotal),
            ]
            for line in order.order_lines
        ],
        ["r", "l", "r", "r", "r", "r"],
    )
    md += (
        f"\n\n**Untaxed Total:** {format_money(order.untaxed_total)}  \n"
        f"**Tax:** {format_money(order.tax)}  \n"
        f"**Total:** {format_money(order.total)}\n"
    )
    if order.terms:
        md += f"\n**Terms & Conditions:** {order.terms}\n"
    return md
