from datetime import date, datetime, time
from typing import Any, List, Literal, Optional, Sequence, Tuple

Align = Literal["l", "c", "r"]

_ALIGN_RULE = {"l": ":---", "c": ":---:", "r": "---:"}


def generate_markdown_table(
    headers: Optional[Sequence[Any]],
    rows: Sequence[Sequence[Any]],
    aligns: Optional[List[Align]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: Column headers, or None to use the first row as headers.
        rows: Table rows; cells are converted with str().
        aligns: One of 'l', 'c', 'r' per column. Defaults to all center.

    Returns:
        str: Markdown formatted table, or "" when there is nothing to show.
    """
    if not rows:
        return ""

    if not headers:
        headers, rows = rows[0], rows[1:]

    head = [str(h) for h in headers]
    body = [[_escape_cell(c) for c in row] for row in rows]

    aligns = aligns or ["c"] * len(head)
    if len(aligns) != len(head):
        raise ValueError("Length of aligns must match number of headers.")

    lines = [
        "| " + " | ".join(head) + " |",
        "| " + " | ".join(_ALIGN_RULE[a] for a in aligns) + " |",
    ]
    lines.extend("| " + " | ".join(row) + " |" for row in body)
    return "\n".join(lines)


def _escape_cell(value: Any) -> str:
    # a pipe inside a cell would split the column
    return str(value).replace("|", "\\|")


def fmt_money(amount: Optional[float]) -> str:
    if amount is None:
        return "-"
    return f"${amount:,.2f}"


def fmt_when(value: Optional[date]) -> str:
    if value is None:
        return "N/A"
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y, %I:%M %p")
    return value.strftime("%d/%m/%Y")


def parse_day(text: str) -> Optional[date]:
    """Parse YYYY-MM-DD typed into an input; None if it isn't a valid date."""
    try:
        return date.fromisoformat((text or "").strip())
    except ValueError:
        return None


def day_span(first: date, last: date) -> Tuple[datetime, datetime]:
    """From the first instant of `first` to the last instant of `last`."""
    return datetime.combine(first, time.min), datetime.combine(last, time.max)
