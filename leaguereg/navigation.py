"""
Header navigation menu. Depends only on who is signed in and the current path.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from leaguereg.models import User


@dataclass(frozen=True)
class MenuItem:
    label: str
    path: str
    external: bool = False
    active: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "path": self.path, "external": self.external, "active": self.active}


_PUBLIC_LINKS: list[tuple[str, str, bool]] = [
    ("Home", "/", False),
    ("Volleyball", "/volleyball", False),
    ("Badminton", "/badminton", False),
    ("Pickleball", "/pickleball", False),
    ("Basketball", "https://hoops.ofsl.ca", True),
    ("Leagues", "/leagues", False),
]

_ACCOUNT_LINKS: list[tuple[str, str]] = [
    ("My Account", "/my-account"),
    ("Profile", "/my-account/profile"),
    ("My Teams", "/my-teams"),
]


def _item(label: str, path: str, current_path: str, external: bool = False) -> MenuItem:
    # Exact match only; /my-account is not active on /my-account/profile
    return MenuItem(label, path, external, active=not external and path == current_path)


def build_menu(user: User | None, current_path: str = "/") -> dict[str, Any]:
    """Public links, then account links for a signed-in user or a login link."""
    links = [_item(label, path, current_path, external) for label, path, external in _PUBLIC_LINKS]
    if user is None:
        account = [_item("Login", "/login", current_path)]
    else:
        account = [_item(label, path, current_path) for label, path in _ACCOUNT_LINKS]
        account.append(MenuItem("Logout", "/logout"))
    return {
        "signed_in": user is not None,
        "user_name": user.name if user else None,
        "is_admin": bool(user and user.is_admin),
        "links": [i.to_dict() for i in links],
        "account": [i.to_dict() for i in account],
    }
