"""
Persistence layer for league registration data.
No business logic, only read/write interfaces.
"""
from .db import get_connection, init_db, set_db_path, transaction
from .repositories import (
    GymRepository,
    LeaguePaymentRepository,
    LeagueRepository,
    PaymentProductRepository,
    SkillRepository,
    SportRepository,
    SubscriptionRepository,
    TeamRepository,
    UserRepository,
)

__all__ = [
    "get_connection",
    "init_db",
    "set_db_path",
    "transaction",
    "GymRepository",
    "LeaguePaymentRepository",
    "LeagueRepository",
    "PaymentProductRepository",
    "SkillRepository",
    "SportRepository",
    "SubscriptionRepository",
    "TeamRepository",
    "UserRepository",
]
