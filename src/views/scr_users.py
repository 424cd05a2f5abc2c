from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Input

import db.crud as crud
from db.errors import ShopError
from utils.pure import fmt_when
from views.base_screen import BaseScreen
from views.modal_dialog import ConfirmModal


class UsersScreen(BaseScreen):
    """
    Account directory for administrators: search, block and unblock.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield Input(id="input-search", placeholder="Search by name, email or role...")
        yield DataTable(id="table-users")
        with Horizontal(id="hort-user-controls"):
            yield Button("Block / Unblock", id="btn-toggle-status", variant="warning")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Name", "Email", "Role", "Last login", "Status")
        self.query_one("#input-search").focus()

    @on(ScreenResume)
    def handle_resume(self) -> None:
        self.reload(self.query_one("#input-search", Input).value)

    @on(Input.Changed, "#input-search")
    def handle_search(self, event: Input.Changed) -> None:
        self.reload(event.value)

    @work(exclusive=True)
    async def reload(self, term: str) -> None:
        try:
            users = await crud.search_users(term)
        except ShopError as err:
            self.report(err)
            return
        table = self.query_one(DataTable)
        table.clear()
        for user in sorted(users, key=lambda u: u.name.lower()):
            table.add_row(
                user.name,
                user.email,
                user.role,
                fmt_when(user.last_login),
                "Blocked" if user.is_blocked else "Active",
                key=user.email,
            )

    @on(DataTable.RowSelected)
    @on(Button.Pressed, "#btn-toggle-status")
    @work(group="status")
    async def handle_toggle_status(self) -> None:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return
        name, email, *_, status = table.get_row_at(table.cursor_row)
        if email == self.app.state.user.email:
            self.notify("You cannot block your own account.", severity="warning")
            return

        block = status == "Active"
        caption = (
            f"Block {name}? They will no longer be able to log in."
            if block
            else f"Unblock {name}? Their access will be restored."
        )
        if not await self.app.push_screen_wait(
            ConfirmModal(caption, tone="error" if block else "warning")
        ):
            return
        try:
            await crud.set_user_status(email, "blocked" if block else "active")
        except ShopError as err:
            self.report(err)
            return
        self.notify(f"{name} has been {'blocked' if block else 'unblocked'}.")
        self.reload(self.query_one("#input-search", Input).value)
