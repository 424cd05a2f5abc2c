from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import db.crud as crud
from db.models import User
from utils.cart import Cart


@dataclass
class GlobalState:
    """
    Centralized application state shared by screens.

    Fields:
      - user: the signed-in account as last read from the directory, None when logged out
      - cart: billing cart of the current checkout; emptied on logout
    """

    user: Optional[User] = None
    cart: Cart = field(default_factory=Cart)

    @property
    def role(self) -> Optional[str]:
        return self.user.role if self.user else None

    @property
    def uid(self) -> Optional[str]:
        return self.user.uid if self.user else None

    async def restore(self) -> Optional[User]:
        """
        Pick up a session left open by a previous run. Blocked accounts and unreadable
        sessions come back logged out; the latter also raise CorruptStateError.
        """
        self.user = None
        self.user = await crud.restore_session()
        return self.user

    async def refresh(self) -> Optional[User]:
        """Re-read the account, e.g. after an administrator changed it."""
        if self.user is not None:
            self.user = await crud.get_user(self.user.email)
        return self.user

    async def login(self, email: str, pwd: str) -> User:
        self.user = await crud.login(email, pwd)
        return self.user

    async def register(self, **fields) -> User:
        self.user = await crud.register_user(**fields)
        return self.user

    async def logout(self) -> None:
        """
        End the current session if one exists.
        """
        if self.user is None:
            return
        await crud.logout()
        self.user = None
        self.cart.clear()
