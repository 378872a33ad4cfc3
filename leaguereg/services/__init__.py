"""
Service layer: roster bookkeeping, payments, dashboard and league editing.
Repositories hold no logic; these modules orchestrate them.
"""
from .dashboard_service import Notification, TeamDashboard, fetch_team_views
from .errors import (
    LeagueNotFoundError,
    LeagueValidationError,
    NotFoundError,
    PaymentNotFoundError,
    PermissionDeniedError,
    TeamNotFoundError,
)
from .league_service import LeagueService
from .payment_service import PaymentService, payment_for_team, virtual_payment
from .roster_service import RosterService, next_membership

__all__ = [
    "Notification",
    "TeamDashboard",
    "fetch_team_views",
    "LeagueNotFoundError",
    "LeagueValidationError",
    "NotFoundError",
    "PaymentNotFoundError",
    "PermissionDeniedError",
    "TeamNotFoundError",
    "LeagueService",
    "PaymentService",
    "payment_for_team",
    "virtual_payment",
    "RosterService",
    "next_membership",
]
