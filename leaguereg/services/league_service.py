"""
League-centric service: public league info and the administrator's editor.
Persistence is delegated to repositories.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any

from leaguereg.models import Gym, League, PaymentProduct, Skill, Sport, User, day_name
from leaguereg.persistence.db import transaction
from leaguereg.persistence.repositories import (
    GymRepository,
    LEAGUE_EDITABLE_COLUMNS,
    LeagueRepository,
    PaymentProductRepository,
    SkillRepository,
    SportRepository,
)

from .errors import LeagueNotFoundError, LeagueValidationError, PermissionDeniedError

logger = logging.getLogger(__name__)

# Sports priced per team rather than per player
_PER_TEAM_SPORTS = {"Volleyball"}
_LOW_SPOTS = 3

# Fields a saved league must keep; an edit may leave them out but not clear them
REQUIRED_LEAGUE_FIELDS = {
    "name": "League name",
    "sport_id": "Sport",
    "skill_id": "Skill level",
    "location": "Location",
    "day_of_week": "Day of week",
    "start_date": "Start date",
    "end_date": "End date",
    "cost": "Cost",
    "max_teams": "Max teams",
}


# ---------- Catalog view ----------


def spots_text(spots: int) -> str:
    if spots == 0:
        return "Full"
    if spots == 1:
        return "1 spot left"
    return f"{spots} spots left"


def spots_badge(spots: int) -> str:
    """full | low | available"""
    if spots == 0:
        return "full"
    if spots <= _LOW_SPOTS:
        return "low"
    return "available"


@dataclass
class LeagueInfo:
    """Read-only league card: schedule, location, price, capacity."""
    league: League
    sport: str | None
    gyms: list[Gym]
    spots_remaining: int

    @property
    def day(self) -> str | None:
        if self.league.hide_day:
            return None
        return day_name(self.league.day_of_week)

    @property
    def price_unit(self) -> str:
        return "per team" if self.sport in _PER_TEAM_SPORTS else "per player"

    @property
    def can_register(self) -> bool:
        return self.spots_remaining > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.league.id,
            "name": self.league.name,
            "sport": self.sport,
            "description": self.league.description,
            "day": self.day,
            "location": self.league.location,
            "gyms": [g.to_dict() for g in self.gyms],
            "start_date": self.league.start_date,
            "end_date": self.league.end_date,
            "price": self.league.cost,
            "price_unit": self.price_unit,
            "spots_remaining": self.spots_remaining,
            "spots_text": spots_text(self.spots_remaining),
            "spots_badge": spots_badge(self.spots_remaining),
            "can_register": self.can_register,
            "register_label": "Register Now" if self.can_register else "Join Waitlist",
        }


# ---------- Editor ----------


@dataclass
class LeagueEditForm:
    """Everything the edit form needs in one read."""
    league: League
    sports: list[Sport]
    skills: list[Skill]
    gyms: list[Gym]
    products: list[PaymentProduct]
    product_id: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "league": self.league.to_dict(),
            "sports": [s.to_dict() for s in self.sports],
            "skills": [s.to_dict() for s in self.skills],
            "gyms": [g.to_dict() for g in self.gyms],
            "products": [p.to_dict() for p in self.products],
            "product_id": self.product_id,
        }


def _require_admin(user: User | None) -> None:
    if user is None or not user.is_admin:
        raise PermissionDeniedError("Administrator access required")


def validate_league_changes(changes: dict[str, Any], current: League | None = None) -> dict[str, Any]:
    """Check editable fields and normalize them. Returns a cleaned copy."""
    unknown = set(changes) - set(LEAGUE_EDITABLE_COLUMNS)
    if unknown:
        raise LeagueValidationError(f"Unknown league fields: {sorted(unknown)}")
    cleaned = dict(changes)
    if cleaned.get("day_of_week") is not None:
        day = int(cleaned["day_of_week"])
        if not 0 <= day <= 6:
            raise LeagueValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
        cleaned["day_of_week"] = day
    if cleaned.get("cost") is not None and float(cleaned["cost"]) < 0:
        raise LeagueValidationError("cost cannot be negative")
    if "max_teams" in cleaned and (cleaned["max_teams"] is None or int(cleaned["max_teams"]) < 1):
        raise LeagueValidationError("max_teams must be at least 1")
    skill_ids = cleaned.get("skill_ids")
    if skill_ids:
        cleaned["skill_ids"] = [int(s) for s in skill_ids]
        primary = cleaned["skill_id"] if "skill_id" in cleaned else (current.skill_id if current else None)
        if primary is None:
            # First checked skill becomes the primary one
            cleaned["skill_id"] = cleaned["skill_ids"][0]
    if cleaned.get("gym_ids") is not None:
        cleaned["gym_ids"] = [int(g) for g in cleaned["gym_ids"]]
    for col in REQUIRED_LEAGUE_FIELDS:
        if col in cleaned and (cleaned[col] is None or (isinstance(cleaned[col], str) and not cleaned[col].strip())):
            raise LeagueValidationError(f"{REQUIRED_LEAGUE_FIELDS[col]} is required")
    return cleaned


@dataclass
class LeagueUpdateResult:
    league: League
    product_linked: bool
    warning: str | None = None


class LeagueService:
    """
    Domain logic for leagues: the public info card and administrator edits,
    including which payment product prices the league.
    """

    def __init__(self) -> None:
        self._league_repo = LeagueRepository()
        self._sport_repo = SportRepository()
        self._skill_repo = SkillRepository()
        self._gym_repo = GymRepository()
        self._product_repo = PaymentProductRepository()

    def _get_league(self, conn: sqlite3.Connection, league_id: int) -> League:
        league = self._league_repo.get(conn, league_id)
        if league is None:
            raise LeagueNotFoundError("League not found")
        return league

    def league_info(self, conn: sqlite3.Connection, league_id: int) -> LeagueInfo:
        league = self._get_league(conn, league_id)
        sport = self._sport_repo.get(conn, league.sport_id) if league.sport_id is not None else None
        taken = self._league_repo.count_active_teams(conn, league_id)
        return LeagueInfo(
            league=league,
            sport=sport.name if sport else None,
            gyms=self._gym_repo.list_by_ids(conn, league.gym_ids),
            spots_remaining=max(league.max_teams - taken, 0),
        )

    def load_league_for_edit(
        self, conn: sqlite3.Connection, league_id: int, user: User | None
    ) -> LeagueEditForm:
        """League plus reference data (sports, skills, active gyms, payment products) and the linked product."""
        _require_admin(user)
        league = self._get_league(conn, league_id)
        product = self._product_repo.get_by_league_id(conn, league_id)
        return LeagueEditForm(
            league=league,
            sports=self._sport_repo.list_all(conn),
            skills=self._skill_repo.list_all(conn),
            gyms=self._gym_repo.list_active(conn),
            products=self._product_repo.list_all(conn),
            product_id=product.id if product else None,
        )

    def update_league(
        self,
        conn: sqlite3.Connection,
        league_id: int,
        changes: dict[str, Any],
        product_id: str | None,
        user: User | None,
    ) -> LeagueUpdateResult:
        """
        Persist league edits, then point the payment product at this league.
        A failed product relink does not undo the league edit; it comes back
        as a warning.
        """
        _require_admin(user)
        current = self._get_league(conn, league_id)
        cleaned = validate_league_changes(changes, current)
        self._league_repo.update(conn, league_id, cleaned)
        logger.info("League %s updated by %s: %s", league_id, user.id, sorted(cleaned))

        warning = None
        linked = False
        try:
            linked = self.relink_product(conn, league_id, product_id)
        except (sqlite3.Error, LookupError):
            logger.exception("Error updating product association for league %s", league_id)
            warning = "League updated but product linking failed"
        return LeagueUpdateResult(
            league=self._get_league(conn, league_id),
            product_linked=linked,
            warning=warning,
        )

    def relink_product(self, conn: sqlite3.Connection, league_id: int, product_id: str | None) -> bool:
        """
        Unlink the league's current product if it is not product_id, then link
        product_id. Returns True when product_id is linked afterwards.
        """
        with transaction(conn):
            if product_id is not None and self._product_repo.get(conn, product_id) is None:
                raise LookupError(f"Product not found: {product_id}")
            current = self._product_repo.get_by_league_id(conn, league_id)
            if current is not None and current.id != product_id:
                self._product_repo.update_league_id(conn, current.id, None)
            if product_id is None:
                return False
            self._product_repo.update_league_id(conn, product_id, league_id)
        return True
