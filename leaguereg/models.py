"""
Data models for the league registration backend.
Domain objects only, no persistence or API logic.

Users register for leagues through teams; a team belongs to one league and
carries a roster of user ids. Each user's financial obligation for a team is a
league payment row.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# ---------- Payment status ----------
class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def day_name(day_of_week: int | None) -> str:
    """0 = Sunday ... 6 = Saturday. Anything else is 'Day TBD'."""
    if day_of_week is None or not 0 <= day_of_week < len(DAY_NAMES):
        return "Day TBD"
    return DAY_NAMES[day_of_week]


# ---------- Reference data ----------
@dataclass
class Sport:
    id: int
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass
class Skill:
    id: int
    name: str
    order_index: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "order_index": self.order_index}


@dataclass
class Gym:
    id: int
    gym: str | None
    address: str | None
    active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "gym": self.gym, "address": self.address, "active": self.active}


# ---------- User ----------
@dataclass
class User:
    """
    A registered player. team_ids mirrors Team.roster and must be kept in step
    by every roster mutation. Password hash is never serialized.
    """
    id: str
    name: str
    email: str
    created_at: datetime
    team_ids: list[int] = field(default_factory=list)
    is_admin: bool = False
    password_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "team_ids": list(self.team_ids),
            "is_admin": self.is_admin,
            "created_at": self.created_at.isoformat(),
        }


# ---------- League ----------
@dataclass
class League:
    """
    A season of one sport at one or more gyms. Edited by administrators only;
    never deleted here. day_of_week: 0 = Sunday ... 6 = Saturday.
    """
    id: int
    name: str
    created_at: datetime
    description: str | None = None
    location: str | None = None
    sport_id: int | None = None
    skill_id: int | None = None  # primary skill level
    skill_ids: list[int] = field(default_factory=list)
    gym_ids: list[int] = field(default_factory=list)
    day_of_week: int | None = None
    start_date: str | None = None
    end_date: str | None = None
    year: str | None = None
    hide_day: bool = False
    cost: float | None = None
    max_teams: int = 20
    active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "location": self.location,
            "sport_id": self.sport_id,
            "skill_id": self.skill_id,
            "skill_ids": list(self.skill_ids),
            "gym_ids": list(self.gym_ids),
            "day_of_week": self.day_of_week,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "year": self.year,
            "hide_day": self.hide_day,
            "cost": self.cost,
            "max_teams": self.max_teams,
            "active": self.active,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Team ----------
@dataclass
class Team:
    """
    A team registered to a league. roster is ordered; roster[0] inherits
    captaincy when the captain leaves. An empty roster means inactive and
    captain-less.
    """
    id: int
    name: str
    league_id: int | None
    captain_id: str | None
    created_at: datetime
    roster: list[str] = field(default_factory=list)
    skill_level_id: int | None = None
    active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "league_id": self.league_id,
            "captain_id": self.captain_id,
            "roster": list(self.roster),
            "skill_level_id": self.skill_level_id,
            "active": self.active,
            "created_at": self.created_at.isoformat(),
        }


# ---------- LeaguePayment ----------
@dataclass
class LeaguePayment:
    """
    One user's obligation for one team/league pairing.
    amount_outstanding comes from the store (amount_due - amount_paid) and is
    never recomputed for persisted rows. A negative id marks a virtual payment
    synthesized for a team that has no row yet.
    """
    id: int
    user_id: str
    team_id: int | None
    league_id: int | None
    amount_due: float
    amount_paid: float
    amount_outstanding: float
    status: str  # PaymentStatus value
    due_date: str | None
    created_at: datetime
    updated_at: datetime | None = None
    payment_method: str | None = None
    stripe_order_id: str | None = None
    notes: str | None = None
    league_name: str | None = None
    team_name: str | None = None

    @property
    def is_virtual(self) -> bool:
        return self.id < 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "team_id": self.team_id,
            "league_id": self.league_id,
            "amount_due": self.amount_due,
            "amount_paid": self.amount_paid,
            "amount_outstanding": self.amount_outstanding,
            "status": self.status,
            "due_date": self.due_date,
            "payment_method": self.payment_method,
            "stripe_order_id": self.stripe_order_id,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "league_name": self.league_name,
            "team_name": self.team_name,
            "is_virtual": self.is_virtual,
        }


@dataclass
class PaymentSummary:
    """Store-side aggregate over all of a user's payment rows."""
    total_due: float
    total_paid: float
    total_outstanding: float
    payment_count: int
    overdue_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_due": self.total_due,
            "total_paid": self.total_paid,
            "total_outstanding": self.total_outstanding,
            "payment_count": self.payment_count,
            "overdue_count": self.overdue_count,
        }


# ---------- PaymentProduct ----------
@dataclass
class PaymentProduct:
    """A payment provider product (price plan). At most one league per product."""
    id: str
    name: str
    price: float
    league_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "price": self.price, "league_id": self.league_id}


# ---------- Subscription ----------
@dataclass
class Subscription:
    """
    A user's recurring plan with the payment provider. Shown on the dashboard
    banner; status follows the provider (active, trialing, past_due, canceled ...).
    """
    id: str
    user_id: str
    status: str
    created_at: datetime
    product_id: str | None = None
    current_period_end: str | None = None
    cancel_at_period_end: bool = False

    @property
    def is_active(self) -> bool:
        return self.status in ("active", "trialing")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status,
            "is_active": self.is_active,
            "product_id": self.product_id,
            "current_period_end": self.current_period_end,
            "cancel_at_period_end": self.cancel_at_period_end,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Dashboard view models ----------
@dataclass
class RosterMember:
    id: str
    name: str
    email: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email}


@dataclass
class TeamView:
    """
    A team joined with its league, sport, skill names, gyms, captain and roster
    details, plus the user's payment for it (if any).
    """
    team: Team
    league: League | None
    sport_name: str | None
    skill_name: str | None
    skill_names: list[str] | None
    captain_name: str | None
    roster_details: list[RosterMember]
    gyms: list[Gym]
    payment: LeaguePayment | None = None

    @property
    def id(self) -> int:
        return self.team.id

    @property
    def active(self) -> bool:
        return self.team.active

    def to_dict(self) -> dict[str, Any]:
        d = self.team.to_dict()
        league: dict[str, Any] | None = None
        if self.league is not None:
            league = {
                "id": self.league.id,
                "name": self.league.name,
                "day_of_week": self.league.day_of_week,
                "day": day_name(self.league.day_of_week),
                "cost": self.league.cost,
                "gym_ids": list(self.league.gym_ids),
                "location": self.league.location,
                "sport": self.sport_name,
            }
        d.update({
            "league": league,
            "skill": self.skill_name,
            "skill_names": self.skill_names,
            "captain_name": self.captain_name,
            "roster_details": [m.to_dict() for m in self.roster_details],
            "gyms": [g.to_dict() for g in self.gyms],
            "payment": self.payment.to_dict() if self.payment else None,
        })
        return d
