from datetime import datetime

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.validation import Number
from textual.widgets import Button, DataTable, Input, Label, MarkdownViewer, Select

import db.crud as crud
from db.errors import ShopError
from db.models import Offer
from utils.messages import CatalogChangedMessage, OffersChangedMessage
from utils.pure import day_span, fmt_money, fmt_when, parse_day
from views.base_screen import BaseScreen
from views.modal_dialog import ConfirmModal


class ActiveOffersScreen(BaseScreen):
    """
    Offers running right now, for customers. Products out of stock are not shown.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield MarkdownViewer(id="md-offers", show_table_of_contents=False)

    @on(ScreenResume)
    @on(OffersChangedMessage)
    @on(CatalogChangedMessage)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        try:
            pairs = await crud.active_offers(datetime.now())
        except ShopError as err:
            self.report(err)
            return
        if not pairs:
            md = "### No active offers\n\nCheck back soon for new deals."
        else:
            blocks = ["### Active Offers\n"]
            for offer, prod in pairs:
                saving = prod.price - offer.discount_price
                blocks.append(
                    f"#### {prod.name}\n"
                    f"~~{fmt_money(prod.price)}~~ **{fmt_money(offer.discount_price)}**"
                    f" (save {fmt_money(saving)})  \n"
                    f"Valid until {fmt_when(offer.end_date)}  \n"
                    f"{offer.descr}\n"
                )
            md = "\n".join(blocks)
        await self.query_one("#md-offers", MarkdownViewer).document.update(md)


class ManageOffersScreen(BaseScreen):
    """
    Create, edit and delete offers. Dates are entered as YYYY-MM-DD; an offer
    runs from the start of its first day to the end of its last.
    """

    def __init__(self) -> None:
        super().__init__()
        self._offers: list[Offer] = []
        self._editing: str | None = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-offer-form", classes="form"):
            yield Label("Product")
            yield Select([], prompt="Select a product", id="select-product")
            with Horizontal():
                with Vertical():
                    yield Label("Offer price ($)")
                    yield Input(
                        type="number",
                        validators=[Number(minimum=0.01)],
                        id="input-offer-price",
                    )
                with Vertical():
                    yield Label("Start (YYYY-MM-DD)")
                    yield Input(placeholder="2025-01-01", id="input-start")
                with Vertical():
                    yield Label("End (YYYY-MM-DD)")
                    yield Input(placeholder="2025-01-31", id="input-end")
            yield Label("Description")
            yield Input(placeholder="At least 5 characters", id="input-offer-descr")
            with Horizontal(id="hort-form-btns"):
                yield Button("Cancel", id="btn-cancel")
                yield Button("Delete", id="btn-delete", variant="error")
                yield Button("Save Offer", id="btn-save", variant="success")
        yield DataTable(id="table-offers")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Product", "Offer Price", "Start", "End", "Status", "Description")

    @on(ScreenResume)
    @on(OffersChangedMessage)
    @on(CatalogChangedMessage)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        try:
            products = await crud.list_products()
            self._offers = await crud.list_offers()
        except ShopError as err:
            self.report(err)
            return
        names = {p.pid: p.name for p in products}

        select = self.query_one("#select-product", Select)
        current = select.value
        select.set_options(
            [(f"{p.name} ({fmt_money(p.price)})", p.pid) for p in products]
        )
        if isinstance(current, str) and current in names:
            select.value = current

        now = datetime.now()
        table = self.query_one(DataTable)
        table.clear()
        for offer in self._offers:
            table.add_row(
                names.get(offer.pid, f"PID {offer.pid}"),
                fmt_money(offer.discount_price),
                fmt_when(offer.start_date.date()),
                fmt_when(offer.end_date.date()),
                offer.status(now),
                offer.descr,
                key=offer.oid,
            )

    @on(DataTable.RowSelected)
    def handle_edit(self, event: DataTable.RowSelected) -> None:
        offer = next((o for o in self._offers if o.oid == event.row_key.value), None)
        if offer is None:
            return
        self._editing = offer.oid
        self.query_one("#select-product", Select).value = offer.pid
        self.query_one("#input-offer-price", Input).value = f"{offer.discount_price:.2f}"
        self.query_one("#input-start", Input).value = offer.start_date.date().isoformat()
        self.query_one("#input-end", Input).value = offer.end_date.date().isoformat()
        self.query_one("#input-offer-descr", Input).value = offer.descr
        self.query_one("#btn-save", Button).label = "Update Offer"

    @on(Button.Pressed, "#btn-cancel")
    def handle_cancel(self) -> None:
        self._editing = None
        for input_ in self.query("#div-offer-form Input").results(Input):
            input_.value = ""
        self.query_one("#select-product", Select).clear()
        self.query_one("#btn-save", Button).label = "Save Offer"

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True, group="save")
    async def handle_save(self) -> None:
        pid = self.query_one("#select-product", Select).value
        if not isinstance(pid, str):
            self.notify("Select a product.", severity="error")
            return
        try:
            price = float(self.query_one("#input-offer-price", Input).value)
        except ValueError:
            self.notify("Enter the offer price.", severity="error")
            return
        start = parse_day(self.query_one("#input-start", Input).value)
        end = parse_day(self.query_one("#input-end", Input).value)
        if start is None or end is None:
            self.notify("Dates must be in YYYY-MM-DD format.", severity="error")
            return

        start_at, end_at = day_span(start, end)
        try:
            await crud.save_offer(
                pid,
                price,
                start_at,
                end_at,
                self.query_one("#input-offer-descr", Input).value,
                oid=self._editing,
            )
        except ShopError as err:
            self.report(err)
            return

        self.notify("Offer updated." if self._editing else "Offer created.")
        self.handle_cancel()
        self.app.broadcast(OffersChangedMessage)

    @on(Button.Pressed, "#btn-delete")
    @work
    async def handle_delete(self) -> None:
        if self._editing is None:
            self.notify("Select an offer in the table first.", severity="warning")
            return
        if not await self.app.push_screen_wait(
            ConfirmModal("Delete this offer?", tone="error")
        ):
            return
        try:
            await crud.delete_offer(self._editing)
        except ShopError as err:
            self.report(err)
            return
        self.notify("Offer deleted.")
        self.handle_cancel()
        self.app.broadcast(OffersChangedMessage)
