from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Input, Label, Select, TabbedContent, TabPane

import db.crud as crud
from db.errors import AuthError, ShopError
from db.models import GENDERS, ROLES
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal, QuitDialogModal


class LoginScreen(BaseScreen):
    """
    Login or sign up. Dismissed once a session is established.
    """

    def __init__(self):
        super().__init__()
        self.configure(header_sub_title="Login", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with TabbedContent(id="super-tab-loginscr"):
            with TabPane("Login", id="tab-login"):
                with Vertical(id="div-login"):
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-login-email")
                    yield Label("Password")
                    yield Input(
                        placeholder="*********", password=True, id="input-login-pwd"
                    )
                    with Horizontal(id="div-login-btns"):
                        yield Button("Quit", id="btn-quit")
                        yield Button("Login", id="btn-login", variant="primary")

            with TabPane("Sign up", id="tab-signup"):
                with Vertical(id="div-reg"):
                    yield Label("Name")
                    yield Input(placeholder="Jane Doe", id="input-reg-name")
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-reg-email")
                    yield Label("Password (6+ characters)")
                    yield Input(
                        placeholder="*********", password=True, id="input-reg-pwd"
                    )
                    yield Label("Role")
                    yield Select(
                        [(r, r) for r in ROLES],
                        allow_blank=False,
                        value="Customer",
                        id="select-reg-role",
                    )
                    yield Label("Secret key", id="label-reg-key")
                    yield Input(
                        placeholder="required for staff roles",
                        password=True,
                        id="input-reg-key",
                    )
                    with Horizontal(id="div-reg-profile"):
                        yield Input(placeholder="Size (S, M, 32...)", id="input-reg-size")
                        yield Select(
                            [(g.capitalize(), g) for g in GENDERS],
                            prompt="Gender",
                            id="select-reg-gender",
                        )
                    with Container(id="div-reg-btns"):
                        yield Button("Register", id="btn-reg", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-email").focus()
        self._toggle_role_fields("Customer")

    def _toggle_role_fields(self, role: str) -> None:
        # secret key for staff, profile fields for customers
        is_customer = role == "Customer"
        self.query_one("#label-reg-key").display = not is_customer
        self.query_one("#input-reg-key").display = not is_customer
        self.query_one("#div-reg-profile").display = is_customer

    @on(Select.Changed, "#select-reg-role")
    def handle_role_change(self, event: Select.Changed) -> None:
        if isinstance(event.value, str):
            self._toggle_role_fields(event.value)

    def on_key(self, event: Key) -> None:
        if event.key == "enter" and self.focused == self.query_one("#input-login-pwd"):
            self.handle_login_submit()

    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        email = self.query_one("#input-login-email", Input).value.strip()
        pwd = self.query_one("#input-login-pwd", Input).value

        if not email or not pwd:
            self.notify("Email or password cannot be empty!", severity="error")
            return

        try:
            user = await self.app.state.login(email, pwd)
        except AuthError as err:
            self.report(err)
            input_login_pwd = self.query_one("#input-login-pwd", Input)
            input_login_pwd.value = ""
            input_login_pwd.focus()
            input_login_pwd.add_class("-invalid")
            return
        except ShopError as err:
            self.report(err)
            return

        self.notify(f"Welcome back, {user.name}!")
        self.dismiss()

    @on(Button.Pressed, "#btn-reg")
    @work(exclusive=True)
    async def handle_registration_submit(self) -> None:
        role = self.query_one("#select-reg-role", Select).value
        gender = self.query_one("#select-reg-gender", Select).value
        is_customer = role == "Customer"
        fields = dict(
            name=self.query_one("#input-reg-name", Input).value,
            email=self.query_one("#input-reg-email", Input).value,
            pwd=self.query_one("#input-reg-pwd", Input).value,
            role=role,
            secret_key=None if is_customer else self.query_one("#input-reg-key", Input).value,
            size=self.query_one("#input-reg-size", Input).value if is_customer else None,
            gender=gender if is_customer and isinstance(gender, str) else None,
        )

        try:
            if not await crud.email_available(fields["email"]):
                input_reg_email = self.query_one("#input-reg-email", Input)
                input_reg_email.add_class("-invalid")
                input_reg_email.focus()
                self.notify("Email already registered.", severity="error")
                return
            user = await self.app.state.register(**fields)
        except ShopError as err:
            self.report(err)
            return

        await self.app.push_screen_wait(
            DialogModal(f"Registration successful. Welcome, {user.name}!")
        )
        self.dismiss()

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
