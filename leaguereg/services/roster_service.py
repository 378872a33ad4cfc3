"""
Roster mutations: the only place that changes teams.roster and users.team_ids.

Every public call runs inside one store transaction so the roster, the
captaincy, the active flag and the members' team_ids move together.
Rules:
- Removing the last member leaves the team inactive with no captain.
- If the captain leaves a non-empty team, roster[0] becomes captain.
"""
from __future__ import annotations

import logging
import sqlite3

from leaguereg.models import LeaguePayment, Team
from leaguereg.persistence.db import transaction
from leaguereg.persistence.repositories import (
    LeaguePaymentRepository,
    TeamRepository,
    UserRepository,
)

from .errors import PaymentNotFoundError, TeamNotFoundError

logger = logging.getLogger(__name__)


def next_membership(
    roster: list[str], captain_id: str | None, leaving_user_id: str
) -> tuple[list[str], str | None, bool]:
    """
    Pure rule: (roster, captain_id, active) after leaving_user_id leaves.
    Remaining order is preserved. A captain who is not on the roster counts
    as no captain, so the first remaining member is promoted.
    """
    remaining = [uid for uid in roster if uid != leaving_user_id]
    if not remaining:
        return [], None, False
    if captain_id is None or captain_id == leaving_user_id or captain_id not in remaining:
        return remaining, remaining[0], True
    return remaining, captain_id, True


class RosterService:
    """Membership changes that keep Team.roster and User.team_ids consistent."""

    def __init__(self) -> None:
        self._team_repo = TeamRepository()
        self._user_repo = UserRepository()
        self._payment_repo = LeaguePaymentRepository()

    def _drop_team_from_user(self, conn: sqlite3.Connection, user_id: str, team_id: int) -> bool:
        """False when the user row is missing."""
        team_ids = self._user_repo.get_team_ids(conn, user_id)
        if team_ids is None:
            return False
        self._user_repo.update_team_ids(conn, user_id, [tid for tid in team_ids if tid != team_id])
        return True

    def remove_member(self, conn: sqlite3.Connection, team_id: int, user_id: str) -> Team:
        """Take user_id off the team and the team off the user. Returns the updated team."""
        with transaction(conn):
            team = self._team_repo.get(conn, team_id)
            if team is None:
                raise TeamNotFoundError(f"Team not found: {team_id}")
            roster, captain_id, active = next_membership(team.roster, team.captain_id, user_id)
            # An inactive team stays inactive even if someone else is still listed
            active = active and team.active
            self._team_repo.update_membership(conn, team_id, roster, captain_id, active)
            if not self._drop_team_from_user(conn, user_id, team_id):
                logger.warning("User %s not found while leaving team %s", user_id, team_id)
        if captain_id != team.captain_id:
            logger.info("Team %s captain %s -> %s", team_id, team.captain_id, captain_id)
        logger.info("User %s removed from team %s (%d left)", user_id, team_id, len(roster))
        team.roster, team.captain_id, team.active = roster, captain_id, active
        return team

    def delete_team(self, conn: sqlite3.Connection, team_id: int) -> list[str]:
        """
        Strip the team from every member's team_ids, then delete the team.
        Payments referencing the team are removed by the store's cascade.
        Members whose user row is missing are logged and skipped.
        Returns the member ids that were updated.
        """
        with transaction(conn):
            team = self._team_repo.get(conn, team_id)
            if team is None:
                raise TeamNotFoundError(f"Team not found: {team_id}")
            updated: list[str] = []
            for user_id in team.roster:
                if self._drop_team_from_user(conn, user_id, team_id):
                    updated.append(user_id)
                else:
                    logger.warning("Skipping missing user %s while deleting team %s", user_id, team_id)
            self._team_repo.delete(conn, team_id)
        logger.info("Deleted team %s (%d members updated)", team_id, len(updated))
        return updated

    def unregister(self, conn: sqlite3.Connection, payment_id: int) -> LeaguePayment:
        """
        Cancel a registration: remove the paying user from the payment's team
        (if any) and delete the payment row. Returns the deleted payment.
        """
        with transaction(conn):
            payment = self._payment_repo.get(conn, payment_id)
            if payment is None:
                raise PaymentNotFoundError("Payment record not found")
            if payment.team_id is not None:
                self.remove_member(conn, payment.team_id, payment.user_id)
            self._payment_repo.delete(conn, payment_id)
        logger.info("Unregistered payment %s (team %s, user %s)", payment_id, payment.team_id, payment.user_id)
        return payment
