from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    broadcasted when the user logs out
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired by the billing screen whenever a cart line is added, edited or removed
    """

    bubble = True


class CatalogChangedMessage(Message):
    """
    Fired after stock or product data was written (checkout, void, stock registration).
    Screens showing products re-read the whole catalog.

    Sent to every open screen through ClickShopApp.broadcast()
    """

    bubble = False


class InvoicesChangedMessage(Message):
    """
    Fired when an invoice is created or voided.
    Listened to by billing and the dashboard
    """

    bubble = False


class OffersChangedMessage(Message):
    """
    Fired when an offer is created, edited or deleted
    """

    bubble = False
