"""
Payment reads for the dashboard: the user's payment rows, the store-side
summary, the current subscription, and virtual payments for teams that have
no row yet.
"""
from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

from leaguereg.models import LeaguePayment, PaymentStatus, PaymentSummary, Subscription, TeamView
from leaguereg.persistence.repositories import LeaguePaymentRepository, SubscriptionRepository


class PaymentService:
    def __init__(self) -> None:
        self._payment_repo = LeaguePaymentRepository()
        self._subscription_repo = SubscriptionRepository()

    def list_user_payments(self, conn: sqlite3.Connection, user_id: str) -> list[LeaguePayment]:
        return self._payment_repo.list_by_user(conn, user_id)

    def get_user_summary(self, conn: sqlite3.Connection, user_id: str) -> PaymentSummary:
        """Aggregated by the store over every payment row, including teams no longer listed."""
        return self._payment_repo.summary_for_user(conn, user_id)

    def get_user_subscription(self, conn: sqlite3.Connection, user_id: str) -> Subscription | None:
        return self._subscription_repo.get_for_user(conn, user_id)


def virtual_payment(view: TeamView, user_id: str) -> LeaguePayment:
    """
    Stand-in payment for a team with no persisted row, priced at the league cost.
    The negative team id marks it as virtual.
    """
    cost = float(view.league.cost or 0) if view.league else 0.0
    now = datetime.now(timezone.utc)
    return LeaguePayment(
        id=-view.team.id,
        user_id=user_id,
        team_id=view.team.id,
        league_id=view.team.league_id,
        amount_due=cost,
        amount_paid=0.0,
        amount_outstanding=cost - 0.0,
        status=PaymentStatus.PENDING.value,
        due_date=now.isoformat(),
        created_at=now,
        updated_at=now,
        league_name=view.league.name if view.league else "Unknown League",
        team_name=view.team.name,
    )


def payment_for_team(view: TeamView, user_id: str) -> LeaguePayment:
    """The payment to settle for this team: the stored row if any, else a virtual one."""
    if view.payment is not None:
        return view.payment
    return virtual_payment(view, user_id)
