from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from db.errors import ShopError
from utils.logger import get_logger
from utils.messages import QuitRequestedMessage, UserLogoutMessage
from utils.state import GlobalState
from views.scr_billing import BillingScreen
from views.scr_catalog import CatalogScreen
from views.scr_dashboard import DashboardScreen
from views.scr_inventory import InventoryScreen
from views.scr_login import LoginScreen
from views.scr_offers import ActiveOffersScreen, ManageOffersScreen
from views.scr_support import SupportScreen
from views.scr_users import UsersScreen

_logger = get_logger(__name__)


class ClickShopApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "catalog": CatalogScreen,
        "offers": ActiveOffersScreen,
        "support": SupportScreen,
        "dashboard": DashboardScreen,
        "billing": BillingScreen,
        "inventory": InventoryScreen,
        "offers_mgr": ManageOffersScreen,
        "users": UsersScreen,
    }

    CUSTOMER_MODES = {
        "catalog": "Catalog",
        "offers": "Offers",
        "support": "Support",
    }
    STAFF_MODES = {
        "dashboard": "Dashboard",
        "billing": "Billing",
        "inventory": "Inventory",
        "offers_mgr": "Manage Offers",
    }
    ADMIN_MODES = {**STAFF_MODES, "users": "Users"}

    CSS_PATH = [
        "views/styles/index.tcss",
        "views/styles/login.tcss",
        "views/styles/catalog.tcss",
        "views/styles/billing.tcss",
        "views/styles/forms.tcss",
        "views/styles/dashboard.tcss",
    ]

    state: GlobalState

    def __init__(self):
        super().__init__()
        self.state = GlobalState()

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.main_flow(restore=True)

    def modes_for_role(self) -> dict:
        user = self.state.user
        if user is None or not user.is_staff:
            return self.CUSTOMER_MODES
        if user.role == "Administrator":
            return self.ADMIN_MODES
        return self.STAFF_MODES

    def broadcast(self, message_type) -> None:
        """Post a fresh message to every screen on the active stack."""
        for screen in self.screen_stack:
            screen.post_message(message_type())

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        await self.state.logout()
        self.notify("Logout successful.")
        self.main_flow()

    @on(QuitRequestedMessage)
    def handle_quit(self):
        # the session stays open for the next run, like a browser tab reopening
        self.exit()

    @work
    async def main_flow(self, restore: bool = False):
        restored = None
        if restore:
            try:
                restored = await self.state.restore()
            except ShopError as err:
                self.notify(str(err), severity="error")
        if restored is None:
            await self.push_screen_wait(LoginScreen())
        _logger.info(f"Session started for {self.state.user.email}")

        first_mode = next(iter(self.modes_for_role()))
        await self.switch_mode(first_mode)


def run() -> None:
    ClickShopApp().run()


if __name__ == "__main__":
    run()
