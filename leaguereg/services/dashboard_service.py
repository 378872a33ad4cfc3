"""
Team/Payment dashboard: everything a user sees about their teams and what
they owe, and the actions they can take from there.

Load pipeline: active teams the user captains or plays on (newest first),
each joined with league, sport, skill names, gyms, captain and roster details,
then merged with the user's payment rows. The current subscription is read
alongside for the banner. Every action reloads the whole
pipeline; a failed load keeps the previous state.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Callable

from leaguereg.models import (
    LeaguePayment,
    PaymentSummary,
    RosterMember,
    Subscription,
    Team,
    TeamView,
    User,
)
from leaguereg.persistence.repositories import (
    GymRepository,
    LeaguePaymentRepository,
    LeagueRepository,
    SkillRepository,
    SportRepository,
    TeamRepository,
    UserRepository,
)

from .errors import NotFoundError, PermissionDeniedError, TeamNotFoundError
from .payment_service import PaymentService, payment_for_team
from .roster_service import RosterService

logger = logging.getLogger(__name__)


# ---------- Load pipeline ----------


def fetch_team_views(conn: sqlite3.Connection, user_id: str) -> list[TeamView]:
    """Active teams for user_id, fully joined. Payments are not attached here."""
    team_repo = TeamRepository()
    league_repo = LeagueRepository()
    user_repo = UserRepository()
    gym_repo = GymRepository()

    teams = team_repo.list_active_for_member(conn, user_id)
    # One skills read for every team instead of one per league
    skills = {s.id: s for s in SkillRepository().list_all(conn)}
    sports = {s.id: s.name for s in SportRepository().list_all(conn)}
    leagues = league_repo.get_many(conn, sorted({t.league_id for t in teams if t.league_id is not None}))

    views: list[TeamView] = []
    for team in teams:
        league = leagues.get(team.league_id) if team.league_id is not None else None

        captain_name = user_repo.get_name(conn, team.captain_id) if team.captain_id else None

        members = {m.id: m for m in user_repo.list_members(conn, team.roster)}
        roster_details: list[RosterMember] = [members[uid] for uid in team.roster if uid in members]

        skill_names: list[str] | None = None
        gyms = []
        if league is not None:
            names = [skills[sid].name for sid in league.skill_ids if sid in skills]
            skill_names = names or None
            gyms = gym_repo.list_by_ids(conn, league.gym_ids)

        skill = skills.get(team.skill_level_id) if team.skill_level_id is not None else None
        views.append(TeamView(
            team=team,
            league=league,
            sport_name=sports.get(league.sport_id) if league and league.sport_id is not None else None,
            skill_name=skill.name if skill else None,
            skill_names=skill_names,
            captain_name=captain_name,
            roster_details=roster_details,
            gyms=gyms,
        ))
    return views


def attach_payments(views: list[TeamView], payments: list[LeaguePayment]) -> list[TeamView]:
    """Give each team the first payment whose team_id matches; others keep None."""
    by_team: dict[int, LeaguePayment] = {}
    for p in payments:
        if p.team_id is not None and p.team_id not in by_team:
            by_team[p.team_id] = p
    for view in views:
        view.payment = by_team.get(view.team.id)
    return views


# ---------- Dashboard ----------


@dataclass
class Notification:
    """Transient message for the user. level: success | error | warning."""
    level: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"level": self.level, "message": self.message}


@dataclass
class DashboardState:
    teams: list[TeamView] = field(default_factory=list)
    payments: list[LeaguePayment] = field(default_factory=list)
    summary: PaymentSummary = field(
        default_factory=lambda: PaymentSummary(0.0, 0.0, 0.0, 0, 0)
    )
    subscription: Subscription | None = None


class TeamDashboard:
    """
    In-memory dashboard for one signed-in user.
    Actions never raise: they report through notifications and return a bool.

    The in-flight guard is per instance: it rejects a repeated action on the
    same entity within one session. The API builds a dashboard per request,
    so across requests the store transaction is what serializes writes.
    """

    def __init__(self, conn: sqlite3.Connection, user: User) -> None:
        self._conn = conn
        self.user = user
        self.state = DashboardState()
        self.notifications: list[Notification] = []
        self._busy: set[tuple[str, int]] = set()
        self._roster = RosterService()
        self._payments = PaymentService()
        self._team_repo = TeamRepository()
        self._payment_repo = LeaguePaymentRepository()

    # ----- state -----

    @property
    def teams(self) -> list[TeamView]:
        return self.state.teams

    @property
    def in_flight(self) -> frozenset[tuple[str, int]]:
        """Entities (kind, id) with an action still running."""
        return frozenset(self._busy)

    @property
    def active_teams(self) -> int:
        return sum(1 for t in self.state.teams if t.active)

    @property
    def captain_teams(self) -> list[TeamView]:
        return [t for t in self.state.teams if t.team.captain_id == self.user.id]

    @property
    def subscription(self) -> Subscription | None:
        return self.state.subscription

    @property
    def outstanding_balance(self) -> float:
        """Store-reported total; not a sum over the listed teams."""
        return self.state.summary.total_outstanding

    def notify(self, level: str, message: str) -> None:
        self.notifications.append(Notification(level, message))

    def load(self) -> bool:
        """Rebuild state from the store. On failure previous state is kept."""
        try:
            views = fetch_team_views(self._conn, self.user.id)
            payments = self._payments.list_user_payments(self._conn, self.user.id)
            summary = self._payments.get_user_summary(self._conn, self.user.id)
        except (sqlite3.Error, ValueError, NotFoundError):
            logger.exception("Error loading teams for user %s", self.user.id)
            self.notify("error", "Failed to load teams")
            return False
        self.state = DashboardState(
            teams=attach_payments(views, payments),
            payments=payments,
            summary=summary,
            subscription=self._load_subscription(),
        )
        return True

    def _load_subscription(self) -> Subscription | None:
        """The banner is optional: a failed read is logged and keeps the last value."""
        try:
            return self._payments.get_user_subscription(self._conn, self.user.id)
        except (sqlite3.Error, ValueError):
            logger.exception("Error loading subscription for user %s", self.user.id)
            return self.state.subscription

    # ----- actions -----

    def _run_action(
        self,
        key: tuple[str, int],
        action: Callable[[], None],
        success_message: str,
        failure_message: str,
    ) -> bool:
        if key in self._busy:
            self.notify("warning", "Please wait for the previous action to finish")
            return False
        self._busy.add(key)
        try:
            action()
        except (NotFoundError, PermissionDeniedError) as exc:
            logger.warning("%s %s failed: %s", key[0], key[1], exc)
            self.notify("error", str(exc))
            return False
        except (sqlite3.Error, ValueError):
            # ValueError covers malformed stored rows (bad JSON arrays)
            logger.exception("%s %s failed", key[0], key[1])
            self.notify("error", failure_message)
            return False
        finally:
            self._busy.discard(key)
        self.notify("success", success_message)
        self.load()
        return True

    def unregister(self, payment_id: int, league_name: str) -> bool:
        """Drop the user's registration behind payment_id (roster, team_ids, payment row)."""
        def action() -> None:
            payment = self._payment_repo.get(self._conn, payment_id)
            if payment is not None and payment.user_id != self.user.id and not self.user.is_admin:
                raise PermissionDeniedError("You can only cancel your own registrations")
            logger.info("Unregistering payment %s for league %s", payment_id, league_name)
            self._roster.unregister(self._conn, payment_id)

        return self._run_action(
            ("payment", payment_id),
            action,
            f"Successfully unregistered from {league_name}",
            "Failed to delete league registration",
        )

    def delete_team(self, team: TeamView | Team) -> bool:
        """Remove the whole team. Captain or administrator only."""
        team_id = team.id

        def action() -> None:
            current = self._team_repo.get(self._conn, team_id)
            if current is None:
                raise TeamNotFoundError("Team not found")
            if current.captain_id != self.user.id and not self.user.is_admin:
                raise PermissionDeniedError("Only the team captain or an administrator can delete a team")
            self._roster.delete_team(self._conn, team_id)

        return self._run_action(
            ("team", team_id), action, "Team deleted successfully", "Failed to delete team"
        )

    def leave_team(self, team: TeamView | Team) -> bool:
        """Take the signed-in user off the team; the team itself stays."""
        team_id = team.id
        return self._run_action(
            ("team", team_id),
            lambda: self._roster.remove_member(self._conn, team_id, self.user.id),
            "You have left the team successfully",
            "Failed to leave team",
        )

    def payment_for(self, team: TeamView) -> LeaguePayment:
        """What 'pay now' should charge for this team."""
        return payment_for_team(team, self.user.id)

    def find_payment(self, payment_id: int) -> LeaguePayment | None:
        return next((p for p in self.state.payments if p.id == payment_id), None)
