from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer, Select

import db.crud as crud
from db.errors import ShopError
from db.models import DEFAULT_CUSTOMER_NAME, PAYMENT_METHODS, Invoice
from utils.pure import fmt_money, generate_markdown_table
from views.modal_dialog import ConfirmModal


class CheckoutModal(ModalScreen[Invoice | None]):
    """
    Invoice summary of the billing cart, with customer name, payment method and an
    optional exchange rate to show the total in local currency.
    Returns the new invoice on success, None when cancelled or rejected.
    """

    def compose(self) -> ComposeResult:
        with Vertical(id="div-checkout"):
            yield MarkdownViewer("", show_table_of_contents=False)
            yield Label("Customer name")
            yield Input(placeholder=DEFAULT_CUSTOMER_NAME, id="input-customer")
            yield Label("Payment method")
            yield Select(
                [(m, m) for m in PAYMENT_METHODS],
                prompt="Select a payment method",
                id="select-payment",
            )
            yield Label("Exchange rate (optional)")
            yield Input(
                placeholder="local currency per $1",
                type="number",
                validators=[Number(minimum=0.0)],
                id="input-rate",
            )
            yield Label("", id="label-converted")
            with Horizontal():
                yield Button("Go Back", id="btn-quit")
                yield Button("Generate Invoice", id="btn-submit", variant="primary")

    async def on_mount(self):
        cart = self.app.state.cart
        rows = [
            [line.name, fmt_money(line.price), line.qty, fmt_money(line.subtotal)]
            for line in cart.lines
        ]
        md = "### Invoice Summary\n\n" + generate_markdown_table(
            ["Product", "Unit Price", "Quantity", "Subtotal"], rows, ["l", "r", "r", "r"]
        )
        md += f"\n\n**Total:** {fmt_money(cart.total)}"
        await self.query_one(MarkdownViewer).document.update(md)
        self.query_one("#input-customer").focus()

    @on(Input.Changed, "#input-rate")
    def handle_rate(self, event: Input.Changed) -> None:
        label = self.query_one("#label-converted", Label)
        try:
            converted = crud.convert_total(self.app.state.cart.total, float(event.value))
        except ValueError:
            converted = None
        label.update(
            f"Total in local currency: {converted:,.2f}" if converted is not None else ""
        )

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self):
        payment = self.query_one("#select-payment", Select).value
        if not isinstance(payment, str):
            self.query_one("#select-payment").focus()
            self.notify("Select a payment method.", severity="error")
            return

        if not await self.app.push_screen_wait(
            ConfirmModal("Generate this invoice? Stock will be updated.", tone="positive")
        ):
            return

        try:
            invoice = await crud.checkout(
                self.app.state.cart,
                payment,
                self.query_one("#input-customer", Input).value,
            )
        except ShopError as err:
            self.notify(str(err), severity="error")
            self.dismiss(None)
            return

        self.notify(f"Invoice {invoice.ino} generated.")
        self.dismiss(invoice)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(None)
