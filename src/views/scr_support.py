from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.events import ScreenResume
from textual.widgets import (
    Button,
    Collapsible,
    DataTable,
    Label,
    Markdown,
    Select,
    TextArea,
)

import db.crud as crud
from db.errors import ShopError
from db.models import SUPPORT_REASONS
from utils.pure import fmt_when
from views.base_screen import BaseScreen

FAQS = [
    (
        "How do I sign up?",
        "Choose **Sign up** on the login screen and fill in your name, email and "
        "password. Employees and administrators pick their role and enter the key "
        "they were given.",
    ),
    (
        "How do I find products?",
        "The catalog lists everything in stock. Search by name or ID, or narrow it "
        "down with the category selector.",
    ),
    (
        "How do payments work?",
        "Payment is settled with a sales advisor, who generates your invoice at the "
        "billing desk.",
    ),
    (
        "How long does delivery take?",
        "It depends on where you are. Your advisor will give you an estimate once "
        "the order is confirmed, usually 2 to 5 business days.",
    ),
    (
        "Can I return a product?",
        "Yes, within 7 days of receiving it, in its original condition with the "
        "tags on. File a support request to start the return.",
    ),
]


class SupportScreen(BaseScreen):
    """
    Contact form, the user's request history and a FAQ.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-support"):
            with Vertical(id="div-support-form", classes="form"):
                yield Label("Reason")
                yield Select(
                    [(r, r) for r in SUPPORT_REASONS],
                    prompt="Select a reason",
                    id="select-reason",
                )
                yield Label("Message")
                yield TextArea(id="text-message")
                yield Button("Send Request", id="btn-send", variant="primary")
                yield Label("Your requests", classes="section-title")
                yield DataTable(id="table-requests")
            with VerticalScroll(id="div-faq"):
                yield Label("Frequently Asked Questions", classes="section-title")
                for question, answer in FAQS:
                    with Collapsible(title=question):
                        yield Markdown(answer)

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.zebra_stripes = True
        table.add_columns("Date", "Reason", "Status", "Message")

    @on(ScreenResume)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        uid = self.app.state.uid
        if uid is None:
            return
        try:
            requests = await crud.list_support_requests(uid)
        except ShopError as err:
            self.report(err)
            return
        table = self.query_one(DataTable)
        table.clear()
        for req in reversed(requests):
            preview = req.message if len(req.message) <= 40 else req.message[:37] + "..."
            table.add_row(fmt_when(req.created), req.reason, req.status, preview)

    @on(Button.Pressed, "#btn-send")
    @work(exclusive=True, group="send")
    async def handle_send(self) -> None:
        reason = self.query_one("#select-reason", Select).value
        message = self.query_one("#text-message", TextArea)
        try:
            await crud.submit_support_request(
                self.app.state.uid,
                reason if isinstance(reason, str) else "",
                message.text,
            )
        except ShopError as err:
            self.report(err)
            return

        self.notify("Request sent. We'll get back to you soon.")
        message.clear()
        self.query_one("#select-reason", Select).clear()
        self.handle_reload()
