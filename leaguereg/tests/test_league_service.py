"""
Tests for league info cards and the administrator league editor,
including payment product relinking.
"""
from __future__ import annotations

import sqlite3

import pytest

from leaguereg.persistence.db import get_connection, init_db, set_db_path
from leaguereg.persistence.repositories import (
    GymRepository,
    LeagueRepository,
    PaymentProductRepository,
    SkillRepository,
    SportRepository,
    TeamRepository,
    UserRepository,
)
from leaguereg.services.errors import (
    LeagueNotFoundError,
    LeagueValidationError,
    PermissionDeniedError,
)
from leaguereg.services.league_service import (
    LeagueService,
    spots_badge,
    spots_text,
    validate_league_changes,
)


@pytest.fixture
def db_conn(tmp_path):
    db_path = tmp_path / "league_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def league_service():
    return LeagueService()


@pytest.fixture
def admin(db_conn):
    return UserRepository().create(db_conn, "Admin", "admin@example.com", id="admin", is_admin=True)


@pytest.fixture
def player(db_conn):
    return UserRepository().create(db_conn, "Player", "player@example.com", id="player")


@pytest.fixture
def volleyball_league(db_conn):
    sport = SportRepository().create(db_conn, "Volleyball")
    gym = GymRepository().create(db_conn, "Central Gym", "10 Main St")
    return LeagueRepository().create(
        db_conn, "Thursday Competitive",
        sport_id=sport.id, gym_ids=[gym.id], day_of_week=4, cost=900.0, max_teams=5,
        location="Central", start_date="2025-09-04", end_date="2025-12-11",
    )


# ---------- catalog view ----------


def test_spots_text():
    assert spots_text(0) == "Full"
    assert spots_text(1) == "1 spot left"
    assert spots_text(7) == "7 spots left"


def test_spots_badge():
    assert spots_badge(0) == "full"
    assert spots_badge(3) == "low"
    assert spots_badge(4) == "available"


def test_league_info_counts_active_teams(db_conn, league_service, volleyball_league, player):
    teams = TeamRepository()
    for i in range(3):
        teams.create(db_conn, f"Team {i}", volleyball_league.id, "player", ["player"])
    teams.create(db_conn, "Folded", volleyball_league.id, None, [], active=False)

    info = league_service.league_info(db_conn, volleyball_league.id)
    d = info.to_dict()

    assert info.spots_remaining == 2
    assert d["spots_text"] == "2 spots left"
    assert d["spots_badge"] == "low"
    assert d["day"] == "Thursday"
    assert d["price"] == 900.0
    assert d["price_unit"] == "per team"
    assert d["register_label"] == "Register Now"
    assert d["gyms"][0]["gym"] == "Central Gym"


def test_league_info_full_league_offers_waitlist(db_conn, league_service, player):
    league = LeagueRepository().create(db_conn, "Tiny", max_teams=1)
    TeamRepository().create(db_conn, "Only", league.id, "player", ["player"])
    TeamRepository().create(db_conn, "Overflow", league.id, "player", ["player"])

    d = league_service.league_info(db_conn, league.id).to_dict()

    assert d["spots_remaining"] == 0
    assert d["spots_text"] == "Full"
    assert d["can_register"] is False
    assert d["register_label"] == "Join Waitlist"


def test_league_info_non_volleyball_priced_per_player(db_conn, league_service):
    sport = SportRepository().create(db_conn, "Badminton")
    league = LeagueRepository().create(db_conn, "Singles", sport_id=sport.id, day_of_week=None)

    d = league_service.league_info(db_conn, league.id).to_dict()

    assert d["price_unit"] == "per player"
    assert d["day"] == "Day TBD"


def test_league_info_hidden_day(db_conn, league_service):
    league = LeagueRepository().create(db_conn, "Flexible", day_of_week=1, hide_day=True)
    assert league_service.league_info(db_conn, league.id).to_dict()["day"] is None


def test_league_info_missing_league(db_conn, league_service):
    with pytest.raises(LeagueNotFoundError):
        league_service.league_info(db_conn, 404)


# ---------- editor: load ----------


def test_load_for_edit_requires_admin(db_conn, league_service, volleyball_league, player):
    with pytest.raises(PermissionDeniedError):
        league_service.load_league_for_edit(db_conn, volleyball_league.id, player)
    with pytest.raises(PermissionDeniedError):
        league_service.load_league_for_edit(db_conn, volleyball_league.id, None)


def test_load_for_edit_returns_reference_data(db_conn, league_service, volleyball_league, admin):
    SkillRepository().create(db_conn, "Advanced", order_index=3)
    SkillRepository().create(db_conn, "Beginner", order_index=1)
    GymRepository().create(db_conn, "Annex", "5 Side St")
    GymRepository().create(db_conn, "Closed Gym", active=False)
    product = PaymentProductRepository().create(
        db_conn, "Thursday Team Fee", 900.0, id="prod_thu", league_id=volleyball_league.id
    )

    form = league_service.load_league_for_edit(db_conn, volleyball_league.id, admin)

    assert form.league.id == volleyball_league.id
    assert [s.name for s in form.sports] == ["Volleyball"]
    assert [s.name for s in form.skills] == ["Beginner", "Advanced"]
    assert [g.gym for g in form.gyms] == ["Annex", "Central Gym"]
    assert form.product_id == product.id
    assert [p.id for p in form.products] == [product.id]
    assert form.to_dict()["products"][0]["name"] == "Thursday Team Fee"


def test_load_for_edit_missing_league(db_conn, league_service, admin):
    with pytest.raises(LeagueNotFoundError) as exc_info:
        league_service.load_league_for_edit(db_conn, 31337, admin)
    assert str(exc_info.value) == "League not found"


# ---------- editor: save ----------


def test_update_league_persists_fields(db_conn, league_service, volleyball_league, admin):
    skill = SkillRepository().create(db_conn, "Intermediate")
    result = league_service.update_league(
        db_conn,
        volleyball_league.id,
        {"name": "Thursday Rec", "cost": 850.0, "day_of_week": "3", "skill_ids": [skill.id], "hide_day": True},
        None,
        admin,
    )

    saved = LeagueRepository().get(db_conn, volleyball_league.id)
    assert saved.name == "Thursday Rec"
    assert saved.cost == 850.0
    assert saved.day_of_week == 3
    assert saved.hide_day is True
    assert saved.skill_ids == [skill.id]
    # First checked skill becomes the primary when none was set
    assert saved.skill_id == skill.id
    # Untouched fields survive
    assert saved.location == "Central"
    assert result.league.name == "Thursday Rec"
    assert result.warning is None


def test_update_league_keeps_existing_primary_skill(db_conn, league_service, admin):
    skills = SkillRepository()
    first = skills.create(db_conn, "A")
    second = skills.create(db_conn, "B")
    league = LeagueRepository().create(db_conn, "Primary", skill_id=first.id, skill_ids=[first.id])

    league_service.update_league(db_conn, league.id, {"skill_ids": [second.id, first.id]}, None, admin)

    assert LeagueRepository().get(db_conn, league.id).skill_id == first.id


def test_update_league_requires_admin(db_conn, league_service, volleyball_league, player):
    with pytest.raises(PermissionDeniedError):
        league_service.update_league(db_conn, volleyball_league.id, {"name": "Hijacked"}, None, player)
    assert LeagueRepository().get(db_conn, volleyball_league.id).name == "Thursday Competitive"


@pytest.mark.parametrize(
    "changes",
    [
        {"name": "  "},
        {"day_of_week": 7},
        {"cost": -1},
        {"max_teams": 0},
        {"active": False},
        {"sport_id": None},
        {"location": "   "},
        {"day_of_week": None},
        {"start_date": ""},
        {"cost": None},
        {"skill_id": None},
    ],
)
def test_validate_league_changes_rejects(changes):
    with pytest.raises(LeagueValidationError):
        validate_league_changes(changes)


def test_update_league_links_selected_product(db_conn, league_service, volleyball_league, admin):
    products = PaymentProductRepository()
    old = products.create(db_conn, "Old Fee", 800.0, id="prod_old", league_id=volleyball_league.id)
    new = products.create(db_conn, "New Fee", 900.0, id="prod_new")

    result = league_service.update_league(db_conn, volleyball_league.id, {}, new.id, admin)

    assert result.product_linked is True
    assert products.get(db_conn, old.id).league_id is None
    assert products.get(db_conn, new.id).league_id == volleyball_league.id
    assert products.get_by_league_id(db_conn, volleyball_league.id).id == new.id


def test_update_league_same_product_stays_linked(db_conn, league_service, volleyball_league, admin):
    products = PaymentProductRepository()
    products.create(db_conn, "Fee", 800.0, id="prod_same", league_id=volleyball_league.id)

    result = league_service.update_league(db_conn, volleyball_league.id, {}, "prod_same", admin)

    assert result.product_linked is True
    assert products.get(db_conn, "prod_same").league_id == volleyball_league.id


def test_update_league_clearing_product_unlinks(db_conn, league_service, volleyball_league, admin):
    products = PaymentProductRepository()
    products.create(db_conn, "Fee", 800.0, id="prod_gone", league_id=volleyball_league.id)

    result = league_service.update_league(db_conn, volleyball_league.id, {}, None, admin)

    assert result.product_linked is False
    assert products.get(db_conn, "prod_gone").league_id is None


def test_product_link_failure_is_a_warning(db_conn, league_service, volleyball_league, admin):
    products = PaymentProductRepository()
    products.create(db_conn, "Fee", 800.0, id="prod_keep", league_id=volleyball_league.id)

    result = league_service.update_league(
        db_conn, volleyball_league.id, {"name": "Renamed"}, "prod_missing", admin
    )

    assert result.warning == "League updated but product linking failed"
    assert result.product_linked is False
    assert result.league.name == "Renamed"
    # Relink rolled back as a unit: the old product is still linked
    assert products.get(db_conn, "prod_keep").league_id == volleyball_league.id


def test_product_link_store_error_is_a_warning(db_conn, league_service, volleyball_league, admin, monkeypatch):
    def broken(conn, product_id, league_id):
        raise sqlite3.OperationalError("provider table unavailable")

    PaymentProductRepository().create(db_conn, "Fee", 10.0, id="prod_x")
    monkeypatch.setattr(league_service._product_repo, "update_league_id", broken)

    result = league_service.update_league(db_conn, volleyball_league.id, {"cost": 10.0}, "prod_x", admin)

    assert result.warning == "League updated but product linking failed"
    assert LeagueRepository().get(db_conn, volleyball_league.id).cost == 10.0


def test_load_for_edit_lists_every_product(db_conn, league_service, volleyball_league, admin):
    products = PaymentProductRepository()
    products.create(db_conn, "Zeta Fee", 50.0, id="prod_z")
    products.create(db_conn, "Alpha Fee", 75.0, id="prod_a", league_id=volleyball_league.id)

    form = league_service.load_league_for_edit(db_conn, volleyball_league.id, admin)

    assert [p.name for p in form.products] == ["Alpha Fee", "Zeta Fee"]
    assert form.product_id == "prod_a"


def test_required_field_message(db_conn):
    with pytest.raises(LeagueValidationError) as exc_info:
        validate_league_changes({"end_date": None})
    assert str(exc_info.value) == "End date is required"


def test_skill_ids_fill_in_required_primary_skill():
    cleaned = validate_league_changes({"skill_id": None, "skill_ids": ["4", "2"]})
    assert cleaned["skill_id"] == 4
