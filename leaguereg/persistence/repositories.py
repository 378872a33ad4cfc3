"""
Repository interfaces for league registration data.
No business logic, only read/write operations.
"""
from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from leaguereg.models import (
    Gym,
    League,
    LeaguePayment,
    PaymentProduct,
    PaymentStatus,
    PaymentSummary,
    RosterMember,
    Skill,
    Sport,
    Subscription,
    Team,
    User,
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _dump_list(values: Iterable[Any] | None) -> str:
    return json.dumps(list(values or []))


def _load_list(raw: str | None) -> list[Any]:
    if not raw:
        return []
    return list(json.loads(raw))


def _placeholders(n: int) -> str:
    return ", ".join("?" for _ in range(n))


# ---------- Reference data ----------


class SportRepository:
    """Sports lookup. Read-mostly."""

    def create(self, conn: sqlite3.Connection, name: str) -> Sport:
        cur = conn.execute("INSERT INTO sports (name) VALUES (?)", (name,))
        conn.commit()
        return Sport(id=cur.lastrowid, name=name)

    def get(self, conn: sqlite3.Connection, sport_id: int) -> Sport | None:
        row = conn.execute("SELECT id, name FROM sports WHERE id = ?", (sport_id,)).fetchone()
        if row is None:
            return None
        return Sport(id=row["id"], name=row["name"])

    def list_all(self, conn: sqlite3.Connection) -> list[Sport]:
        rows = conn.execute("SELECT id, name FROM sports ORDER BY name").fetchall()
        return [Sport(id=r["id"], name=r["name"]) for r in rows]


class SkillRepository:
    """Skill levels lookup. Read-mostly."""

    def create(self, conn: sqlite3.Connection, name: str, order_index: int = 0) -> Skill:
        cur = conn.execute(
            "INSERT INTO skills (name, order_index) VALUES (?, ?)", (name, order_index)
        )
        conn.commit()
        return Skill(id=cur.lastrowid, name=name, order_index=order_index)

    def get(self, conn: sqlite3.Connection, skill_id: int) -> Skill | None:
        row = conn.execute(
            "SELECT id, name, order_index FROM skills WHERE id = ?", (skill_id,)
        ).fetchone()
        if row is None:
            return None
        return Skill(id=row["id"], name=row["name"], order_index=row["order_index"])

    def list_all(self, conn: sqlite3.Connection) -> list[Skill]:
        rows = conn.execute(
            "SELECT id, name, order_index FROM skills ORDER BY order_index, id"
        ).fetchall()
        return [Skill(id=r["id"], name=r["name"], order_index=r["order_index"]) for r in rows]


class GymRepository:
    """Gyms lookup. Read-mostly."""

    def create(
        self, conn: sqlite3.Connection, gym: str, address: str | None = None, active: bool = True
    ) -> Gym:
        cur = conn.execute(
            "INSERT INTO gyms (gym, address, active) VALUES (?, ?, ?)",
            (gym, address, 1 if active else 0),
        )
        conn.commit()
        return Gym(id=cur.lastrowid, gym=gym, address=address, active=active)

    def list_by_ids(self, conn: sqlite3.Connection, gym_ids: list[int]) -> list[Gym]:
        if not gym_ids:
            return []
        rows = conn.execute(
            f"SELECT id, gym, address, active FROM gyms WHERE id IN ({_placeholders(len(gym_ids))}) ORDER BY id",
            tuple(gym_ids),
        ).fetchall()
        return [Gym(id=r["id"], gym=r["gym"], address=r["address"], active=bool(r["active"])) for r in rows]

    def list_active(self, conn: sqlite3.Connection) -> list[Gym]:
        rows = conn.execute(
            "SELECT id, gym, address, active FROM gyms WHERE active = 1 ORDER BY gym"
        ).fetchall()
        return [Gym(id=r["id"], gym=r["gym"], address=r["address"], active=True) for r in rows]


# ---------- UserRepository ----------


def _row_to_user(r: sqlite3.Row) -> User:
    return User(
        id=r["id"],
        name=r["name"],
        email=r["email"],
        team_ids=_load_list(r["team_ids"]),
        is_admin=bool(r["is_admin"]),
        password_hash=r["password_hash"],
        created_at=_parse_datetime(r["created_at"]),
    )


_USER_COLS = "id, name, email, team_ids, is_admin, password_hash, created_at"


class UserRepository:
    """CRUD for users. team_ids is the back-reference to teams.roster."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        email: str,
        id: str | None = None,
        team_ids: list[int] | None = None,
        is_admin: bool = False,
        password_hash: str | None = None,
    ) -> User:
        uid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            "INSERT INTO users (id, name, email, team_ids, is_admin, password_hash, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (uid, name, email, _dump_list(team_ids), 1 if is_admin else 0, password_hash, now),
        )
        conn.commit()
        return User(
            id=uid, name=name, email=email, team_ids=list(team_ids or []),
            is_admin=is_admin, password_hash=password_hash, created_at=_parse_datetime(now),
        )

    def get(self, conn: sqlite3.Connection, user_id: str) -> User | None:
        row = conn.execute(f"SELECT {_USER_COLS} FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return _row_to_user(row)

    def get_by_email(self, conn: sqlite3.Connection, email: str) -> User | None:
        row = conn.execute(f"SELECT {_USER_COLS} FROM users WHERE email = ?", (email,)).fetchone()
        if row is None:
            return None
        return _row_to_user(row)

    def get_name(self, conn: sqlite3.Connection, user_id: str) -> str | None:
        row = conn.execute("SELECT name FROM users WHERE id = ?", (user_id,)).fetchone()
        return row["name"] if row else None

    def list_members(self, conn: sqlite3.Connection, user_ids: list[str]) -> list[RosterMember]:
        """id, name, email for the given ids. Unknown ids are skipped."""
        if not user_ids:
            return []
        rows = conn.execute(
            f"SELECT id, name, email FROM users WHERE id IN ({_placeholders(len(user_ids))})",
            tuple(user_ids),
        ).fetchall()
        return [RosterMember(id=r["id"], name=r["name"], email=r["email"]) for r in rows]

    def get_team_ids(self, conn: sqlite3.Connection, user_id: str) -> list[int] | None:
        """None when the user does not exist."""
        row = conn.execute("SELECT team_ids FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return _load_list(row["team_ids"])

    def update_team_ids(self, conn: sqlite3.Connection, user_id: str, team_ids: list[int]) -> None:
        conn.execute("UPDATE users SET team_ids = ? WHERE id = ?", (_dump_list(team_ids), user_id))
        conn.commit()


# ---------- LeagueRepository ----------


def _row_to_league(r: sqlite3.Row) -> League:
    return League(
        id=r["id"],
        name=r["name"],
        description=r["description"],
        location=r["location"],
        sport_id=r["sport_id"],
        skill_id=r["skill_id"],
        skill_ids=_load_list(r["skill_ids"]),
        gym_ids=_load_list(r["gym_ids"]),
        day_of_week=r["day_of_week"],
        start_date=r["start_date"],
        end_date=r["end_date"],
        year=r["year"],
        hide_day=bool(r["hide_day"]),
        cost=r["cost"],
        max_teams=r["max_teams"],
        active=bool(r["active"]),
        created_at=_parse_datetime(r["created_at"]),
    )


_LEAGUE_COLS = (
    "id, name, description, location, sport_id, skill_id, skill_ids, gym_ids, day_of_week, "
    "start_date, end_date, year, hide_day, cost, max_teams, active, created_at"
)

# Columns update() may write. Arrays are JSON-encoded, flags stored as 0/1.
LEAGUE_EDITABLE_COLUMNS = (
    "name", "description", "location", "sport_id", "skill_id", "skill_ids", "day_of_week",
    "year", "start_date", "end_date", "hide_day", "cost", "max_teams", "gym_ids",
)
_ARRAY_COLUMNS = {"skill_ids", "gym_ids"}
_FLAG_COLUMNS = {"hide_day", "active"}


def _encode_league_value(col: str, value: Any) -> Any:
    if col in _ARRAY_COLUMNS:
        return _dump_list(value)
    if col in _FLAG_COLUMNS:
        return 1 if value else 0
    return value


class LeagueRepository:
    """CRUD for leagues. Leagues are never deleted."""

    def create(self, conn: sqlite3.Connection, name: str, **fields: Any) -> League:
        unknown = set(fields) - set(LEAGUE_EDITABLE_COLUMNS) - {"active"}
        if unknown:
            raise ValueError(f"Unknown league fields: {sorted(unknown)}")
        cols = ["name", "created_at"] + list(fields)
        args = [name, _now_iso()] + [_encode_league_value(c, v) for c, v in fields.items()]
        cur = conn.execute(
            f"INSERT INTO leagues ({', '.join(cols)}) VALUES ({_placeholders(len(cols))})",
            args,
        )
        conn.commit()
        league = self.get(conn, cur.lastrowid)
        assert league is not None
        return league

    def get(self, conn: sqlite3.Connection, league_id: int) -> League | None:
        row = conn.execute(f"SELECT {_LEAGUE_COLS} FROM leagues WHERE id = ?", (league_id,)).fetchone()
        if row is None:
            return None
        return _row_to_league(row)

    def get_many(self, conn: sqlite3.Connection, league_ids: list[int]) -> dict[int, League]:
        if not league_ids:
            return {}
        rows = conn.execute(
            f"SELECT {_LEAGUE_COLS} FROM leagues WHERE id IN ({_placeholders(len(league_ids))})",
            tuple(league_ids),
        ).fetchall()
        return {r["id"]: _row_to_league(r) for r in rows}

    def update(self, conn: sqlite3.Connection, league_id: int, changes: dict[str, Any]) -> None:
        """Write only the given editable columns."""
        unknown = set(changes) - set(LEAGUE_EDITABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Not editable: {sorted(unknown)}")
        if not changes:
            return
        assignments = ", ".join(f"{c} = ?" for c in changes)
        args = [_encode_league_value(c, v) for c, v in changes.items()]
        conn.execute(f"UPDATE leagues SET {assignments} WHERE id = ?", (*args, league_id))
        conn.commit()

    def count_active_teams(self, conn: sqlite3.Connection, league_id: int) -> int:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM teams WHERE league_id = ? AND active = 1", (league_id,)
        ).fetchone()
        return int(row["n"])


# ---------- TeamRepository ----------


def _row_to_team(r: sqlite3.Row) -> Team:
    return Team(
        id=r["id"],
        name=r["name"],
        league_id=r["league_id"],
        captain_id=r["captain_id"],
        roster=_load_list(r["roster"]),
        skill_level_id=r["skill_level_id"],
        active=bool(r["active"]),
        created_at=_parse_datetime(r["created_at"]),
    )


_TEAM_COLS = "id, name, league_id, captain_id, roster, skill_level_id, active, created_at"


class TeamRepository:
    """CRUD for teams. roster is an ordered list of user ids."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        league_id: int | None,
        captain_id: str | None,
        roster: list[str],
        skill_level_id: int | None = None,
        active: bool = True,
        created_at: str | None = None,
    ) -> Team:
        now = created_at or _now_iso()
        cur = conn.execute(
            "INSERT INTO teams (name, league_id, captain_id, roster, skill_level_id, active, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (name, league_id, captain_id, _dump_list(roster), skill_level_id, 1 if active else 0, now),
        )
        conn.commit()
        return Team(
            id=cur.lastrowid, name=name, league_id=league_id, captain_id=captain_id,
            roster=list(roster), skill_level_id=skill_level_id, active=active,
            created_at=_parse_datetime(now),
        )

    def get(self, conn: sqlite3.Connection, team_id: int) -> Team | None:
        row = conn.execute(f"SELECT {_TEAM_COLS} FROM teams WHERE id = ?", (team_id,)).fetchone()
        if row is None:
            return None
        return _row_to_team(row)

    def list_active_for_member(self, conn: sqlite3.Connection, user_id: str) -> list[Team]:
        """Active teams the user captains or plays on, most recently created first."""
        rows = conn.execute(
            f"""
            SELECT {_TEAM_COLS} FROM teams
            WHERE active = 1
              AND (captain_id = ?
                   OR EXISTS (SELECT 1 FROM json_each(teams.roster) WHERE json_each.value = ?))
            ORDER BY created_at DESC, id DESC
            """,
            (user_id, user_id),
        ).fetchall()
        return [_row_to_team(r) for r in rows]

    def update_membership(
        self,
        conn: sqlite3.Connection,
        team_id: int,
        roster: list[str],
        captain_id: str | None,
        active: bool,
    ) -> None:
        conn.execute(
            "UPDATE teams SET roster = ?, captain_id = ?, active = ? WHERE id = ?",
            (_dump_list(roster), captain_id, 1 if active else 0, team_id),
        )
        conn.commit()

    def delete(self, conn: sqlite3.Connection, team_id: int) -> None:
        """league_payments rows for the team go with it (ON DELETE CASCADE)."""
        conn.execute("DELETE FROM teams WHERE id = ?", (team_id,))
        conn.commit()


# ---------- LeaguePaymentRepository ----------


def _row_to_payment(r: sqlite3.Row) -> LeaguePayment:
    keys = r.keys()
    return LeaguePayment(
        id=r["id"],
        user_id=r["user_id"],
        team_id=r["team_id"],
        league_id=r["league_id"],
        amount_due=r["amount_due"],
        amount_paid=r["amount_paid"],
        amount_outstanding=r["amount_outstanding"],
        status=r["status"],
        due_date=r["due_date"],
        payment_method=r["payment_method"],
        stripe_order_id=r["stripe_order_id"],
        notes=r["notes"],
        created_at=_parse_datetime(r["created_at"]),
        updated_at=_parse_datetime(r["updated_at"]) if r["updated_at"] else None,
        league_name=r["league_name"] if "league_name" in keys else None,
        team_name=r["team_name"] if "team_name" in keys else None,
    )


_PAYMENT_COLS = (
    "p.id, p.user_id, p.team_id, p.league_id, p.amount_due, p.amount_paid, p.amount_outstanding, "
    "p.status, p.due_date, p.payment_method, p.stripe_order_id, p.notes, p.created_at, p.updated_at"
)


class LeaguePaymentRepository:
    """CRUD for league_payments. amount_outstanding is computed by the store."""

    def create(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        team_id: int | None,
        league_id: int | None,
        amount_due: float,
        amount_paid: float = 0.0,
        status: str = PaymentStatus.PENDING.value,
        due_date: str | None = None,
        stripe_order_id: str | None = None,
    ) -> LeaguePayment:
        now = _now_iso()
        cur = conn.execute(
            "INSERT INTO league_payments (user_id, team_id, league_id, amount_due, amount_paid, status, due_date, stripe_order_id, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (user_id, team_id, league_id, amount_due, amount_paid, status, due_date, stripe_order_id, now, now),
        )
        conn.commit()
        payment = self.get(conn, cur.lastrowid)
        assert payment is not None
        return payment

    def get(self, conn: sqlite3.Connection, payment_id: int) -> LeaguePayment | None:
        row = conn.execute(
            f"SELECT {_PAYMENT_COLS} FROM league_payments p WHERE p.id = ?", (payment_id,)
        ).fetchone()
        if row is None:
            return None
        return _row_to_payment(row)

    def list_by_user(self, conn: sqlite3.Connection, user_id: str) -> list[LeaguePayment]:
        """All of the user's payments with league and team names, newest first."""
        rows = conn.execute(
            f"""
            SELECT {_PAYMENT_COLS}, l.name AS league_name, t.name AS team_name
            FROM league_payments p
            LEFT JOIN leagues l ON l.id = p.league_id
            LEFT JOIN teams t ON t.id = p.team_id
            WHERE p.user_id = ?
            ORDER BY p.created_at DESC, p.id DESC
            """,
            (user_id,),
        ).fetchall()
        return [_row_to_payment(r) for r in rows]

    def list_by_team(self, conn: sqlite3.Connection, team_id: int) -> list[LeaguePayment]:
        rows = conn.execute(
            f"SELECT {_PAYMENT_COLS} FROM league_payments p WHERE p.team_id = ? ORDER BY p.id",
            (team_id,),
        ).fetchall()
        return [_row_to_payment(r) for r in rows]

    def summary_for_user(self, conn: sqlite3.Connection, user_id: str) -> PaymentSummary:
        row = conn.execute(
            """
            SELECT COALESCE(SUM(amount_due), 0) AS total_due,
                   COALESCE(SUM(amount_paid), 0) AS total_paid,
                   COALESCE(SUM(amount_outstanding), 0) AS total_outstanding,
                   COUNT(*) AS payment_count,
                   COALESCE(SUM(CASE WHEN status = 'overdue' THEN 1 ELSE 0 END), 0) AS overdue_count
            FROM league_payments WHERE user_id = ?
            """,
            (user_id,),
        ).fetchone()
        return PaymentSummary(
            total_due=float(row["total_due"]),
            total_paid=float(row["total_paid"]),
            total_outstanding=float(row["total_outstanding"]),
            payment_count=int(row["payment_count"]),
            overdue_count=int(row["overdue_count"]),
        )

    def delete(self, conn: sqlite3.Connection, payment_id: int) -> None:
        conn.execute("DELETE FROM league_payments WHERE id = ?", (payment_id,))
        conn.commit()


# ---------- PaymentProductRepository ----------


class PaymentProductRepository:
    """Payment provider products and their league link."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        price: float,
        id: str | None = None,
        league_id: int | None = None,
    ) -> PaymentProduct:
        pid = id or f"prod_{uuid.uuid4().hex[:14]}"
        conn.execute(
            "INSERT INTO stripe_products (id, name, price, league_id) VALUES (?, ?, ?, ?)",
            (pid, name, price, league_id),
        )
        conn.commit()
        return PaymentProduct(id=pid, name=name, price=price, league_id=league_id)

    def get(self, conn: sqlite3.Connection, product_id: str) -> PaymentProduct | None:
        row = conn.execute(
            "SELECT id, name, price, league_id FROM stripe_products WHERE id = ?", (product_id,)
        ).fetchone()
        if row is None:
            return None
        return PaymentProduct(id=row["id"], name=row["name"], price=row["price"], league_id=row["league_id"])

    def get_by_league_id(self, conn: sqlite3.Connection, league_id: int) -> PaymentProduct | None:
        row = conn.execute(
            "SELECT id, name, price, league_id FROM stripe_products WHERE league_id = ? ORDER BY id LIMIT 1",
            (league_id,),
        ).fetchone()
        if row is None:
            return None
        return PaymentProduct(id=row["id"], name=row["name"], price=row["price"], league_id=row["league_id"])

    def list_all(self, conn: sqlite3.Connection) -> list[PaymentProduct]:
        rows = conn.execute("SELECT id, name, price, league_id FROM stripe_products ORDER BY name").fetchall()
        return [PaymentProduct(id=r["id"], name=r["name"], price=r["price"], league_id=r["league_id"]) for r in rows]

    def update_league_id(self, conn: sqlite3.Connection, product_id: str, league_id: int | None) -> bool:
        """Returns False when the product does not exist."""
        cur = conn.execute(
            "UPDATE stripe_products SET league_id = ? WHERE id = ?", (league_id, product_id)
        )
        conn.commit()
        return cur.rowcount > 0


# ---------- SubscriptionRepository ----------


def _row_to_subscription(r: sqlite3.Row) -> Subscription:
    return Subscription(
        id=r["id"],
        user_id=r["user_id"],
        status=r["status"],
        created_at=_parse_datetime(r["created_at"]),
        product_id=r["product_id"],
        current_period_end=r["current_period_end"],
        cancel_at_period_end=bool(r["cancel_at_period_end"]),
    )


class SubscriptionRepository:
    """Payment provider subscriptions, read for the dashboard banner."""

    def create(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        status: str = "active",
        product_id: str | None = None,
        current_period_end: str | None = None,
        cancel_at_period_end: bool = False,
        id: str | None = None,
        created_at: str | None = None,
    ) -> Subscription:
        sid = id or f"sub_{uuid.uuid4().hex[:14]}"
        now = created_at or _now_iso()
        conn.execute(
            "INSERT INTO stripe_subscriptions (id, user_id, product_id, status, current_period_end, cancel_at_period_end, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (sid, user_id, product_id, status, current_period_end, 1 if cancel_at_period_end else 0, now),
        )
        conn.commit()
        return Subscription(
            id=sid, user_id=user_id, status=status, created_at=_parse_datetime(now),
            product_id=product_id, current_period_end=current_period_end,
            cancel_at_period_end=cancel_at_period_end,
        )

    def get_for_user(self, conn: sqlite3.Connection, user_id: str) -> Subscription | None:
        """The user's most recent subscription, or None."""
        row = conn.execute(
            """
            SELECT id, user_id, product_id, status, current_period_end, cancel_at_period_end, created_at
            FROM stripe_subscriptions WHERE user_id = ?
            ORDER BY created_at DESC, rowid DESC LIMIT 1
            """,
            (user_id,),
        ).fetchone()
        if row is None:
            return None
        return _row_to_subscription(row)
