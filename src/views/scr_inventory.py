from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.validation import Number
from textual.widgets import Button, DataTable, Input, Label, Select

import db.crud as crud
from db.errors import ShopError
from db.models import CATEGORIES
from utils.messages import CatalogChangedMessage
from utils.pure import fmt_money
from views.base_screen import BaseScreen


class InventoryScreen(BaseScreen):
    """
    Register incoming stock. A name matching an existing product (ignoring case)
    tops up that product instead of creating a new one.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-stock-form", classes="form"):
            yield Label("Product name")
            yield Input(placeholder="Floral Summer Dress", id="input-name")
            with Horizontal():
                with Vertical():
                    yield Label("Price ($)")
                    yield Input(
                        type="number",
                        validators=[Number(minimum=0.01)],
                        id="input-price",
                    )
                with Vertical():
                    yield Label("Quantity")
                    yield Input(
                        type="integer",
                        validators=[Number(minimum=1)],
                        id="input-qty",
                    )
                with Vertical():
                    yield Label("Category")
                    yield Select(
                        [(c, c) for c in CATEGORIES],
                        prompt="Category",
                        id="select-category",
                    )
            yield Label("Description")
            yield Input(id="input-descr")
            with Horizontal(id="hort-form-btns"):
                yield Button("Clear", id="btn-clear")
                yield Button("Register Stock", id="btn-register", variant="success")
        yield DataTable(id="table-stock")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Name", "Category", "Price", "Stock")
        self.query_one("#input-name").focus()

    @on(ScreenResume)
    @on(CatalogChangedMessage)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        try:
            products = await crud.list_products()
        except ShopError as err:
            self.report(err)
            return
        table = self.query_one(DataTable)
        table.clear()
        for prod in products:
            table.add_row(
                prod.pid,
                prod.name,
                prod.category,
                fmt_money(prod.price),
                prod.stock_count,
                key=prod.pid,
            )

    @on(DataTable.RowSelected)
    @work
    async def handle_prefill(self) -> None:
        # restocking an existing product starts from its current details
        table = self.query_one(DataTable)
        try:
            prod = await crud.get_product(str(table.get_row_at(table.cursor_row)[0]))
        except ShopError as err:
            self.report(err)
            return
        if prod is None:
            return
        self.query_one("#input-name", Input).value = prod.name
        self.query_one("#input-price", Input).value = f"{prod.price:.2f}"
        self.query_one("#select-category", Select).value = prod.category
        self.query_one("#input-descr", Input).value = prod.descr
        self.query_one("#input-qty", Input).focus()

    @on(Button.Pressed, "#btn-clear")
    def handle_clear(self) -> None:
        for input_ in self.query("#div-stock-form Input").results(Input):
            input_.value = ""
        self.query_one("#select-category", Select).clear()
        self.query_one("#input-name").focus()

    @on(Button.Pressed, "#btn-register")
    @work(exclusive=True, group="register")
    async def handle_register(self) -> None:
        price_input = self.query_one("#input-price", Input)
        qty_input = self.query_one("#input-qty", Input)
        category = self.query_one("#select-category", Select).value

        try:
            price = float(price_input.value)
        except ValueError:
            price_input.add_class("-invalid")
            price_input.focus()
            self.notify("Enter a price.", severity="error")
            return
        try:
            qty = int(qty_input.value)
        except ValueError:
            qty_input.add_class("-invalid")
            qty_input.focus()
            self.notify("Enter a whole quantity.", severity="error")
            return
        if not isinstance(category, str):
            self.notify("Select a category.", severity="error")
            return

        try:
            prod, created = await crud.register_stock(
                self.query_one("#input-name", Input).value,
                price,
                qty,
                category,
                self.query_one("#input-descr", Input).value,
            )
        except ShopError as err:
            self.report(err)
            return

        if created:
            self.notify(f"Registered {prod.name} ({prod.pid}) with {prod.stock_count} units.")
        else:
            self.notify(f"{prod.name} restocked to {prod.stock_count} units.")
        self.handle_clear()
        self.app.broadcast(CatalogChangedMessage)
