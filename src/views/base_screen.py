from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import ScreenResume
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from db.errors import ShopError
from utils.messages import UserLogoutMessage
from utils.pure import fmt_when, generate_markdown_table
from views.modal_dialog import ConfirmModal, QuitDialogModal


class Sidebar(Container):
    _shown = None

    def compose(self) -> ComposeResult:
        yield Label("User Info", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Log out", id="btn-logout", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def on_mount(self):
        await self.populate()

    async def populate(self) -> None:
        """User info table and the menu of modes open to the user's role."""
        user = self.app.state.user
        if user is None or (user.uid, user.last_login) == self._shown:
            return
        self._shown = (user.uid, user.last_login)

        table_rows = [
            ["Name", user.name],
            ["Email", user.email],
            ["Role", user.role],
            ["Last login", fmt_when(user.last_login)],
        ]
        await self.query_one(Markdown).update(
            generate_markdown_table(None, table_rows, ["l", "l"])
        )

        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.clear()
        await list_menu.extend(
            [ListItem(Label(v), name=k) for k, v in self.app.modes_for_role().items()]
        )
        self.highlight_item(self.app.current_mode)

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.name
        self.highlight_item(self.app.current_mode)
        if self.app.current_mode != selected_mode:
            await self.app.switch_mode(selected_mode)

    @on(Button.Pressed, "#btn-logout")
    @work
    async def handle_logout(self):
        if await self.app.push_screen_wait(
            ConfirmModal("Are you sure you want to log out?")
        ):
            self.post_message(UserLogoutMessage())

    def highlight_item(self, mode_str: str):
        list_menu = self.query_one("#list-menu")
        for item in list_menu.children:
            item.highlighted = item.name == mode_str


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "Click Shop",
        show_sidebar: bool = True,
    ) -> None:
        """
        configure behavior of the base screen
        """
        self.app.title = "Click Shop"
        self.sub_title = header_sub_title
        all_modes = {**self.app.CUSTOMER_MODES, **self.app.ADMIN_MODES}
        for k, v in self.app.MODES.items():
            if type(self) is v:
                self.sub_title = all_modes.get(k, header_sub_title)

        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    @on(ScreenResume)
    async def handle_resume_sidebar(self) -> None:
        # screens of a mode outlive a logout; the next user may have another role
        if not self._show_sidebar:
            return
        try:
            await self.app.state.refresh()
        except ShopError as err:
            self.report(err)
        for sidebar in self.query(Sidebar):
            await sidebar.populate()

    def report(self, err: ShopError, severity: str = "error") -> None:
        self.notify(str(err), severity=severity)

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
