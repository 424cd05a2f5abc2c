import asyncio
from typing import List, Tuple

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.events import ScreenResume
from textual.widgets import MarkdownViewer

import db.crud as crud
from db.errors import ShopError
from utils.messages import CatalogChangedMessage, InvoicesChangedMessage
from utils.pure import fmt_money, generate_markdown_table
from views.base_screen import BaseScreen


class DashboardScreen(BaseScreen):
    """
    Back-office summary: sales over Paid invoices, stock, customers, catalog
    visits and the best sellers by units.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-dashboard", show_table_of_contents=False)

    @on(InvoicesChangedMessage)
    @on(CatalogChangedMessage)
    @on(ScreenResume)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        try:
            summary, top = await asyncio.gather(
                crud.sales_summary(), crud.top_products_by_units(k=3)
            )
        except ShopError as err:
            self.report(err)
            return

        def mk_table(rows: List[Tuple[str, str, int]]) -> str:
            if not rows:
                return "_No sales yet._\n"
            return generate_markdown_table(
                ["PID", "Name", "Units"], [list(r) for r in rows], ["r", "l", "r"]
            ) + "\n"

        md = (
            "### Sales Summary\n\n"
            f"- Total Sales: {fmt_money(summary['total_sales_amount'])}\n"
            f"- Paid Invoices: {summary['paid_invoices']}\n"
            f"- Voided Invoices: {summary['void_invoices']}\n"
            f"- Units Sold: {summary['units_sold']}\n\n"
            "### Store\n\n"
            f"- Products in Stock: {summary['products_in_stock']}\n"
            f"- Registered Customers: {summary['customers']}\n"
            f"- Catalog Visits: {summary['catalog_visits']}\n\n"
            "### Best Sellers\n\n"
            + mk_table(top)
        )
        await self.query_one("#md-dashboard", MarkdownViewer).document.update(md)
