from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.validation import Number
from textual.widgets import (
    Button,
    DataTable,
    Input,
    Label,
    MarkdownViewer,
    TabbedContent,
    TabPane,
)

import db.crud as crud
from db.errors import ShopError
from db.models import Invoice
from utils.messages import (
    CartChangedMessage,
    CatalogChangedMessage,
    InvoicesChangedMessage,
)
from utils.pure import fmt_money, fmt_when, generate_markdown_table
from views.base_screen import BaseScreen
from views.modal_checkout import CheckoutModal
from views.modal_dialog import ConfirmModal


class BillingScreen(BaseScreen):
    """
    Billing desk for staff.

    Sale tab: pick products into the cart (checked against live stock), edit
    quantities, then generate the invoice.
    Invoices tab: the ledger, newest first, with voiding.
    """

    BINDINGS = [
        Binding("a", "add_selected", "Add to cart", show=True),
        Binding("delete", "remove_line", "Remove line", show=True),
        Binding("v", "void_invoice", "Void invoice", show=True),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._invoices: list[Invoice] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with TabbedContent(id="tabs-billing"):
            with TabPane("Sale", id="tab-sale"):
                yield Input(id="input-search", placeholder="Search by name or ID...")
                yield DataTable(id="table-products")
                yield Label("Cart", classes="section-title")
                yield DataTable(id="table-cart")
                with Horizontal(id="hort-cart-controls"):
                    yield Input(
                        placeholder="Qty",
                        type="integer",
                        validators=[Number(minimum=1)],
                        id="input-qty",
                    )
                    yield Button("Set Qty", id="btn-set-qty")
                    yield Button("Remove", id="btn-remove", variant="warning")
                    yield Button("Clear Cart", id="btn-clear-cart")
                    yield Label("Total: $0.00", id="label-cart-total")
                    yield Button("Generate Invoice", id="btn-checkout", variant="primary")
            with TabPane("Invoices", id="tab-invoices"):
                with Vertical():
                    yield MarkdownViewer(id="md-invoice", show_table_of_contents=False)
                    yield DataTable(id="table-invoices")
                with Horizontal(id="hort-invoice-controls"):
                    yield Button("Refresh", id="btn-refresh")
                    yield Button("Void Invoice", id="btn-void", variant="error")

    def on_mount(self) -> None:
        for table_id, columns in (
            ("#table-products", ("ID", "Name", "Category", "Price", "Stock")),
            ("#table-cart", ("ID", "Name", "Unit Price", "Qty", "Subtotal")),
            ("#table-invoices", ("Invoice", "Date", "Customer", "Payment", "Total", "Status")),
        ):
            table = self.query_one(table_id, DataTable)
            table.cursor_type = "row"
            table.zebra_stripes = True
            table.add_columns(*columns)

        self.render_cart()
        self.query_one("#input-search").focus()

    @on(ScreenResume)
    @on(CatalogChangedMessage)
    def handle_catalog_change(self) -> None:
        self.load_products(self.query_one("#input-search", Input).value)

    @on(ScreenResume)
    @on(InvoicesChangedMessage)
    @on(Button.Pressed, "#btn-refresh")
    def handle_invoices_change(self) -> None:
        self.load_invoices()

    @on(Input.Changed, "#input-search")
    def handle_search(self, event: Input.Changed) -> None:
        self.load_products(event.value)

    @work(exclusive=True, group="products")
    async def load_products(self, query: str) -> None:
        try:
            products = await crud.search_products(query)
        except ShopError as err:
            self.report(err)
            return
        table = self.query_one("#table-products", DataTable)
        table.clear()
        for prod in products:
            table.add_row(
                prod.pid,
                prod.name,
                prod.category,
                fmt_money(prod.price),
                prod.stock_count if prod.stock_count > 0 else "out",
                key=prod.pid,
            )

    # ---------------------------
    # Cart
    # ---------------------------

    @on(CartChangedMessage)
    def render_cart(self) -> None:
        cart = self.app.state.cart
        table = self.query_one("#table-cart", DataTable)
        table.clear()
        for line in cart.lines:
            table.add_row(
                line.pid,
                line.name,
                fmt_money(line.price),
                line.qty,
                fmt_money(line.subtotal),
                key=line.pid,
            )
        self.query_one("#label-cart-total", Label).update(f"Total: {fmt_money(cart.total)}")

    @staticmethod
    def _cursor_key(table: DataTable) -> str | None:
        if table.row_count == 0:
            return None
        return str(table.get_row_at(table.cursor_row)[0])

    @on(DataTable.RowSelected, "#table-products")
    def handle_product_selected(self) -> None:
        self.action_add_selected()

    @work(group="cart")
    async def action_add_selected(self) -> None:
        pid = self._cursor_key(self.query_one("#table-products", DataTable))
        if pid is None:
            return
        try:
            line = await crud.add_to_cart(self.app.state.cart, pid)
        except ShopError as err:
            self.report(err, "warning")
            return
        self.notify(f"{line.name} x{line.qty} in cart.")
        self.post_message(CartChangedMessage())

    @on(DataTable.RowHighlighted, "#table-cart")
    def handle_cart_highlight(self) -> None:
        pid = self._cursor_key(self.query_one("#table-cart", DataTable))
        if pid is not None:
            self.query_one("#input-qty", Input).value = str(self.app.state.cart.qty_of(pid))

    @on(Button.Pressed, "#btn-set-qty")
    @work(group="cart")
    async def handle_set_qty(self) -> None:
        pid = self._cursor_key(self.query_one("#table-cart", DataTable))
        qty_input = self.query_one("#input-qty", Input)
        if pid is None:
            self.notify("Cart is empty.", severity="warning")
            return
        try:
            qty = int(qty_input.value)
        except ValueError:
            qty_input.add_class("-invalid")
            qty_input.focus()
            self.notify("Enter a whole quantity.", severity="error")
            return
        try:
            await crud.set_cart_qty(self.app.state.cart, pid, qty)
        except ShopError as err:
            self.report(err)
            qty_input.value = str(self.app.state.cart.qty_of(pid))
            return
        self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-remove")
    def action_remove_line(self) -> None:
        pid = self._cursor_key(self.query_one("#table-cart", DataTable))
        if pid is None:
            return
        self.app.state.cart.remove(pid)
        self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-clear-cart")
    @work
    async def handle_clear_cart(self) -> None:
        if not self.app.state.cart:
            self.notify("Cart is empty.", severity="warning")
            return
        if await self.app.push_screen_wait(
            ConfirmModal("Remove every line from the cart?", tone="error")
        ):
            self.app.state.cart.clear()
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-checkout")
    @work
    async def handle_checkout(self) -> None:
        if not self.app.state.cart:
            self.notify(
                "Cart is empty. Add products to generate an invoice.", severity="warning"
            )
            return
        invoice = await self.app.push_screen_wait(CheckoutModal())
        self.post_message(CartChangedMessage())
        if invoice is not None:
            self.app.broadcast(CatalogChangedMessage)
            self.app.broadcast(InvoicesChangedMessage)
        else:
            # a rejected checkout may mean stock moved underneath the cart
            self.handle_catalog_change()

    # ---------------------------
    # Invoices
    # ---------------------------

    @work(exclusive=True, group="invoices")
    async def load_invoices(self) -> None:
        try:
            self._invoices = await crud.list_invoices()
        except ShopError as err:
            self.report(err)
            return
        table = self.query_one("#table-invoices", DataTable)
        table.clear()
        for inv in self._invoices:
            table.add_row(
                inv.ino,
                fmt_when(inv.created),
                inv.customer_name,
                inv.payment_method,
                fmt_money(inv.total),
                inv.status,
                key=inv.ino,
            )
        if self._invoices:
            table.cursor_coordinate = (0, 0)
        self.render_invoice(self._invoices[0] if self._invoices else None)

    @on(DataTable.RowHighlighted, "#table-invoices")
    def handle_invoice_highlight(self, event: DataTable.RowHighlighted) -> None:
        ino = event.row_key.value
        self.render_invoice(next((i for i in self._invoices if i.ino == ino), None))

    def render_invoice(self, invoice: Invoice | None) -> None:
        viewer = self.query_one("#md-invoice", MarkdownViewer)
        if invoice is None:
            viewer.document.update("### No invoices yet.")
            return

        header = (
            f"### Invoice {invoice.ino} ({invoice.status})\n"
            f"Date: {fmt_when(invoice.created)}  \n"
            f"Customer: {invoice.customer_name}  \n"
            f"Payment: {invoice.payment_method}\n\n"
        )
        rows = [
            [line.name, line.qty, fmt_money(line.price), fmt_money(line.subtotal)]
            for line in invoice.lines
        ]
        md = header + generate_markdown_table(
            ["Product", "Qty", "Unit Price", "Subtotal"], rows, ["l", "r", "r", "r"]
        )
        md += f"\n\n**Total:** {fmt_money(invoice.total)}"
        viewer.document.update(md)

    @on(Button.Pressed, "#btn-void")
    @work
    async def action_void_invoice(self) -> None:
        ino = self._cursor_key(self.query_one("#table-invoices", DataTable))
        if ino is None:
            return
        if not await self.app.push_screen_wait(
            ConfirmModal(f"Void invoice {ino}? Its stock will be restored.", tone="error")
        ):
            return
        try:
            await crud.void_invoice(ino)
        except ShopError as err:
            self.report(err)
            return
        self.notify(f"Invoice {ino} voided.")
        self.app.broadcast(CatalogChangedMessage)
        self.app.broadcast(InvoicesChangedMessage)
