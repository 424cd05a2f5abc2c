from datetime import datetime

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.events import ScreenResume
from textual.reactive import reactive
from textual.widgets import DataTable, Input, Label, Select

import db.crud as crud
from db.errors import ShopError
from utils.messages import CatalogChangedMessage, OffersChangedMessage
from utils.pure import fmt_money
from views.base_screen import BaseScreen
from views.modal_prod_detail import ProdDetailModal


class CatalogScreen(BaseScreen):
    """
    Catalog for customers: category tabs, search, offer prices and favorites.
    Only products in stock are listed.
    """

    BINDINGS = [
        Binding("f", "toggle_favorite", "Favorite", show=True),
    ]

    tab = reactive("All")
    query_str = reactive("")

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-catalog-filters"):
            yield Select(
                [(t, t) for t in crud.CATEGORY_TABS],
                allow_blank=False,
                value="All",
                id="select-tab",
            )
            yield Input(id="input-search", placeholder="Search the catalog...")
        yield DataTable(id="table-catalog")
        yield Label("", id="label-catalog-count")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Name", "Category", "Price", "Offer", "Stock", "Fav")

        self.count_visit()
        self.query_one("#input-search").focus()

    @work
    async def count_visit(self) -> None:
        try:
            await crud.record_catalog_visit()
        except ShopError as err:
            self.report(err, "warning")

    @on(Select.Changed, "#select-tab")
    def handle_tab(self, event: Select.Changed) -> None:
        if isinstance(event.value, str):
            self.tab = event.value

    @on(Input.Changed, "#input-search")
    def handle_search(self, event: Input.Changed) -> None:
        self.query_str = event.value

    def watch_tab(self, _, __) -> None:
        self.reload()

    def watch_query_str(self, _, __) -> None:
        self.reload()

    @on(ScreenResume)
    @on(CatalogChangedMessage)
    @on(OffersChangedMessage)
    def handle_refresh(self) -> None:
        self.reload()

    @work(exclusive=True)
    async def reload(self) -> None:
        try:
            favorites = await crud.list_favorites()
            in_tab = await crud.products_by_category(self.tab, favorites)
            matches = {p.pid for p in await crud.search_products(self.query_str)}
            offers = await crud.list_offers()
        except ShopError as err:
            self.report(err)
            return

        now = datetime.now()
        table = self.query_one(DataTable)
        table.clear()
        shown = 0
        for prod in in_tab:
            if prod.pid not in matches:
                continue
            price_now = crud.effective_price(prod, offers, now)
            table.add_row(
                prod.pid,
                prod.name,
                prod.category,
                fmt_money(prod.price),
                fmt_money(price_now) if price_now != prod.price else "",
                prod.stock_count,
                "★" if prod.pid in favorites else "",
                key=prod.pid,
            )
            shown += 1
        self.query_one("#label-catalog-count", Label).update(f"{shown} products")

    def _selected_pid(self) -> str | None:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        return str(table.get_row_at(table.cursor_row)[0])

    @on(DataTable.RowSelected, "#table-catalog")
    @work
    async def open_detail(self) -> None:
        pid = self._selected_pid()
        if pid and await self.app.push_screen_wait(ProdDetailModal(pid)):
            self.reload()

    @work(exclusive=True, group="favorite")
    async def action_toggle_favorite(self) -> None:
        pid = self._selected_pid()
        if pid is None:
            return
        if self.app.state.role != "Customer":
            self.notify("Only customers keep favorites.", severity="warning")
            return
        try:
            favorites = await crud.toggle_favorite(pid)
        except ShopError as err:
            self.report(err)
            return
        self.notify("Added to favorites." if pid in favorites else "Removed from favorites.")
        self.reload()
