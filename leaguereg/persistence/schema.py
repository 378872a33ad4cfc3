"""
SQLite schema for league registration entities.
Migration-friendly: each table created with IF NOT EXISTS.
Array columns (roster, team_ids, skill_ids, gym_ids) hold JSON text.
"""
from __future__ import annotations


def sports_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS sports (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE
    );
    """


def skills_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS skills (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        order_index INTEGER NOT NULL DEFAULT 0
    );
    """


def gyms_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS gyms (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        gym TEXT,
        address TEXT,
        active INTEGER NOT NULL DEFAULT 1
    );
    """


def users_schema() -> str:
    """team_ids mirrors teams.roster (JSON array of team ids)."""
    return """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        team_ids TEXT NOT NULL DEFAULT '[]',
        is_admin INTEGER NOT NULL DEFAULT 0,
        password_hash TEXT,
        created_at TEXT NOT NULL
    );
    """


def leagues_schema() -> str:
    """day_of_week: 0 = Sunday ... 6 = Saturday."""
    return """
    CREATE TABLE IF NOT EXISTS leagues (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        description TEXT,
        location TEXT,
        sport_id INTEGER,
        skill_id INTEGER,
        skill_ids TEXT NOT NULL DEFAULT '[]',
        gym_ids TEXT NOT NULL DEFAULT '[]',
        day_of_week INTEGER,
        start_date TEXT,
        end_date TEXT,
        year TEXT,
        hide_day INTEGER NOT NULL DEFAULT 0,
        cost REAL,
        max_teams INTEGER NOT NULL DEFAULT 20,
        active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        FOREIGN KEY (sport_id) REFERENCES sports(id),
        FOREIGN KEY (skill_id) REFERENCES skills(id)
    );
    CREATE INDEX IF NOT EXISTS ix_leagues_sport ON leagues(sport_id);
    """


def teams_schema() -> str:
    """roster is an ordered JSON array of user ids."""
    return """
    CREATE TABLE IF NOT EXISTS teams (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        league_id INTEGER,
        captain_id TEXT,
        roster TEXT NOT NULL DEFAULT '[]',
        skill_level_id INTEGER,
        active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        FOREIGN KEY (league_id) REFERENCES leagues(id),
        FOREIGN KEY (captain_id) REFERENCES users(id),
        FOREIGN KEY (skill_level_id) REFERENCES skills(id)
    );
    CREATE INDEX IF NOT EXISTS ix_teams_league ON teams(league_id);
    CREATE INDEX IF NOT EXISTS ix_teams_captain ON teams(captain_id);
    """


def league_payments_schema() -> str:
    """Deleting a team deletes its payment rows. amount_outstanding is computed by the store."""
    return """
    CREATE TABLE IF NOT EXISTS league_payments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        team_id INTEGER,
        league_id INTEGER,
        amount_due REAL NOT NULL DEFAULT 0,
        amount_paid REAL NOT NULL DEFAULT 0,
        amount_outstanding REAL GENERATED ALWAYS AS (amount_due - amount_paid) STORED,
        status TEXT NOT NULL DEFAULT 'pending',
        due_date TEXT,
        payment_method TEXT,
        stripe_order_id TEXT,
        notes TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (team_id) REFERENCES teams(id) ON DELETE CASCADE,
        FOREIGN KEY (league_id) REFERENCES leagues(id)
    );
    CREATE INDEX IF NOT EXISTS ix_league_payments_user ON league_payments(user_id);
    CREATE INDEX IF NOT EXISTS ix_league_payments_team ON league_payments(team_id);
    """


def stripe_products_schema() -> str:
    """Payment provider products. league_id links a product to the league it prices."""
    return """
    CREATE TABLE IF NOT EXISTS stripe_products (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        price REAL NOT NULL DEFAULT 0,
        league_id INTEGER,
        FOREIGN KEY (league_id) REFERENCES leagues(id) ON DELETE SET NULL
    );
    CREATE INDEX IF NOT EXISTS ix_stripe_products_league ON stripe_products(league_id);
    """


def stripe_subscriptions_schema() -> str:
    """Payment provider subscriptions, newest row per user is the current one."""
    return """
    CREATE TABLE IF NOT EXISTS stripe_subscriptions (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        product_id TEXT,
        status TEXT NOT NULL,
        current_period_end TEXT,
        cancel_at_period_end INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (product_id) REFERENCES stripe_products(id) ON DELETE SET NULL
    );
    CREATE INDEX IF NOT EXISTS ix_stripe_subscriptions_user ON stripe_subscriptions(user_id);
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution. Referenced tables first."""
    return "\n".join([
        sports_schema(),
        skills_schema(),
        gyms_schema(),
        users_schema(),
        leagues_schema(),
        teams_schema(),
        league_payments_schema(),
        stripe_products_schema(),
        stripe_subscriptions_schema(),
    ])
