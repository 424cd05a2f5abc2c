from datetime import datetime

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, MarkdownViewer

import db.crud as crud
from db.errors import ShopError
from db.models import Product
from utils.pure import fmt_money, generate_markdown_table


class ProdDetailModal(ModalScreen[bool]):
    """
    product detail with the current offer, plus the favorite toggle for customers
    Will return true if favorites changed, false if not
    """

    def __init__(self, pid: str) -> None:
        super().__init__()

        self._pid = pid
        self._prod: Product | None = None
        self._changed = False

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-prod-detail"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with Vertical():
                yield Button("Go Back", id="btn-quit")
                yield Button("Add to Favorites", id="btn-fav", variant="primary")

    async def on_mount(self):
        try:
            self._prod = await crud.get_product(self._pid)
            offers = await crud.list_offers()
        except ShopError as err:
            self.notify(str(err), severity="error")
            self.dismiss(False)
            return
        if self._prod is None:
            self.notify("Product no longer exists.", severity="error")
            self.dismiss(False)
            return

        now = datetime.now()
        offer = crud.find_active_offer(self._prod.pid, offers, now)
        table_rows = [
            ["Category", self._prod.category],
            ["Price", fmt_money(self._prod.price)],
            ["Price now", fmt_money(crud.effective_price(self._prod, offers, now))],
            ["Offer ends", f"{offer.end_date:%d/%m/%Y}" if offer else "-"],
            ["In stock", self._prod.stock_count],
            ["Description", self._prod.descr],
        ]
        md = f"### {self._prod.name}\n\n" + generate_markdown_table(
            ["Attribute", "Value"], table_rows, ["l", "l"]
        )
        if offer:
            md += f"\n\n> {offer.descr}"
        await self.query_one(MarkdownViewer).document.update(md)

        btn_fav = self.query_one("#btn-fav", Button)
        if self.app.state.role != "Customer":
            btn_fav.display = False
        else:
            try:
                await self._sync_fav_button()
            except ShopError as err:
                self.notify(str(err), severity="warning")
        self.query_one("#btn-quit").focus()

    async def _sync_fav_button(self) -> None:
        btn_fav = self.query_one("#btn-fav", Button)
        if await crud.is_favorite(self._pid):
            btn_fav.label = "Remove Favorite"
            btn_fav.variant = "warning"
        else:
            btn_fav.label = "Add to Favorites"
            btn_fav.variant = "primary"

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(self._changed)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(self._changed)

    @on(Button.Pressed, "#btn-fav")
    @work(exclusive=True)
    async def handle_fav(self):
        try:
            await crud.toggle_favorite(self._pid)
        except ShopError as err:
            self.notify(str(err), severity="error")
            return
        self._changed = not self._changed
        await self._sync_fav_button()
