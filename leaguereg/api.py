"""
REST API for the league registration backend.
Thin wrappers around the services and persistence.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncGenerator, Generator

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from leaguereg.auth import create_access_token, decode_token, hash_password, verify_password
from leaguereg.config import configure_logging, get_settings
from leaguereg.models import User
from leaguereg.navigation import build_menu
from leaguereg.persistence import TeamRepository, UserRepository, get_connection, init_db
from leaguereg.persistence.db import StoreConnection, get_db_path
from leaguereg.services import (
    LeagueService,
    NotFoundError,
    PermissionDeniedError,
    TeamDashboard,
)

logger = logging.getLogger(__name__)


@contextmanager
def db_conn() -> Generator[StoreConnection, None, None]:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging()
    init_db(db_path=get_db_path())
    yield


# ---------- FastAPI app ----------
app = FastAPI(
    title="League Registration API",
    description="Leagues, teams, rosters and league payments",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(PermissionDeniedError)
async def _forbidden(request: Request, exc: PermissionDeniedError) -> JSONResponse:
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def _bad_request(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# ---------- Request/Response models ----------

security = HTTPBearer(auto_error=False)


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: str
    password: str


class UnregisterRequest(BaseModel):
    league_name: str = Field("this league", description="Used in the confirmation message only")


class UpdateLeagueRequest(BaseModel):
    """The whole edit form. skill_id may be left out when skill_ids picks it."""
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    location: str = Field(..., min_length=1)
    sport_id: int
    skill_id: int | None = None
    skill_ids: list[int] = Field(default_factory=list)
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    year: str | None = None
    start_date: str = Field(..., min_length=1)
    end_date: str = Field(..., min_length=1)
    hide_day: bool = False
    cost: float = Field(..., ge=0)
    max_teams: int = Field(..., ge=1)
    gym_ids: list[int] = Field(default_factory=list)
    product_id: str | None = Field(None, description="Payment product to link to this league")


def _get_current_user_id(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> str | None:
    """Return user_id from JWT or None if no/invalid token."""
    if credentials is None:
        return None
    return decode_token(credentials.credentials)


def _current_user(conn: StoreConnection, user_id: str | None) -> User | None:
    if user_id is None:
        return None
    return UserRepository().get(conn, user_id)


def _require_user(conn: StoreConnection, user_id: str | None) -> User:
    user = _current_user(conn, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Sign in required")
    return user


def _dashboard_payload(dashboard: TeamDashboard) -> dict[str, Any]:
    return {
        "teams": [t.to_dict() for t in dashboard.teams],
        "stats": {
            "active_teams": dashboard.active_teams,
            "captain_teams": len(dashboard.captain_teams),
            "outstanding_balance": dashboard.outstanding_balance,
        },
        "summary": dashboard.state.summary.to_dict(),
        "subscription": dashboard.subscription.to_dict() if dashboard.subscription else None,
        "notifications": [n.to_dict() for n in dashboard.notifications],
    }


def _loaded_dashboard(conn: StoreConnection, user: User) -> TeamDashboard:
    dashboard = TeamDashboard(conn, user)
    if not dashboard.load():
        raise HTTPException(status_code=503, detail="Failed to load teams")
    return dashboard


def _action_result(dashboard: TeamDashboard, ok: bool) -> dict[str, Any]:
    if not ok:
        message = dashboard.notifications[-1].message if dashboard.notifications else "Action failed"
        raise HTTPException(status_code=400, detail=message)
    return _dashboard_payload(dashboard)


# ---------- Endpoints ----------


@app.post("/signup")
def signup(req: SignupRequest) -> dict[str, Any]:
    """Create account. Passwords hashed, never stored plain."""
    with db_conn() as conn:
        user_repo = UserRepository()
        if user_repo.get_by_email(conn, req.email):
            raise HTTPException(status_code=400, detail="Email already registered")
        user = user_repo.create(conn, req.name, req.email, password_hash=hash_password(req.password))
        return {"user_id": user.id, "name": user.name, "token": create_access_token(user.id)}


@app.post("/login")
def login(req: LoginRequest) -> dict[str, Any]:
    """Returns JWT token."""
    with db_conn() as conn:
        user = UserRepository().get_by_email(conn, req.email)
        if user is None or not verify_password(req.password, user.password_hash):
            raise HTTPException(status_code=401, detail="Invalid email or password")
        return {"user_id": user.id, "name": user.name, "token": create_access_token(user.id)}


@app.get("/navigation")
def navigation(path: str = "/", user_id: str | None = Depends(_get_current_user_id)) -> dict[str, Any]:
    with db_conn() as conn:
        return build_menu(_current_user(conn, user_id), path)


@app.get("/me/teams")
def my_teams(user_id: str | None = Depends(_get_current_user_id)) -> dict[str, Any]:
    """Dashboard: the user's active teams with payments, plus balance stats."""
    with db_conn() as conn:
        user = _require_user(conn, user_id)
        return _dashboard_payload(_loaded_dashboard(conn, user))


@app.post("/payments/{payment_id}/unregister")
def unregister(
    payment_id: int,
    req: UnregisterRequest | None = None,
    user_id: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    with db_conn() as conn:
        user = _require_user(conn, user_id)
        dashboard = _loaded_dashboard(conn, user)
        league_name = req.league_name if req else "this league"
        return _action_result(dashboard, dashboard.unregister(payment_id, league_name))


@app.post("/teams/{team_id}/leave")
def leave_team(team_id: int, user_id: str | None = Depends(_get_current_user_id)) -> dict[str, Any]:
    with db_conn() as conn:
        user = _require_user(conn, user_id)
        dashboard = _loaded_dashboard(conn, user)
        view = next((t for t in dashboard.teams if t.id == team_id), None)
        if view is None:
            raise HTTPException(status_code=404, detail="Team not found")
        return _action_result(dashboard, dashboard.leave_team(view))


@app.delete("/teams/{team_id}")
def delete_team(team_id: int, user_id: str | None = Depends(_get_current_user_id)) -> dict[str, Any]:
    with db_conn() as conn:
        user = _require_user(conn, user_id)
        dashboard = _loaded_dashboard(conn, user)
        view = next((t for t in dashboard.teams if t.id == team_id), None)
        if view is None:
            # Administrators may delete teams they are not on
            team = TeamRepository().get(conn, team_id)
            if team is None:
                raise HTTPException(status_code=404, detail="Team not found")
            return _action_result(dashboard, dashboard.delete_team(team))
        return _action_result(dashboard, dashboard.delete_team(view))


@app.get("/teams/{team_id}/payment")
def team_payment(team_id: int, user_id: str | None = Depends(_get_current_user_id)) -> dict[str, Any]:
    """Payment to settle for the team: stored row, or a virtual one priced at the league cost."""
    with db_conn() as conn:
        user = _require_user(conn, user_id)
        dashboard = _loaded_dashboard(conn, user)
        view = next((t for t in dashboard.teams if t.id == team_id), None)
        if view is None:
            raise HTTPException(status_code=404, detail="Team not found")
        return dashboard.payment_for(view).to_dict()


@app.get("/leagues/{league_id}")
def league_info(league_id: int) -> dict[str, Any]:
    with db_conn() as conn:
        return LeagueService().league_info(conn, league_id).to_dict()


@app.get("/leagues/{league_id}/edit")
def league_edit_form(league_id: int, user_id: str | None = Depends(_get_current_user_id)) -> dict[str, Any]:
    with db_conn() as conn:
        user = _require_user(conn, user_id)
        return LeagueService().load_league_for_edit(conn, league_id, user).to_dict()


@app.put("/leagues/{league_id}")
def update_league(
    league_id: int,
    req: UpdateLeagueRequest,
    user_id: str | None = Depends(_get_current_user_id),
) -> dict[str, Any]:
    with db_conn() as conn:
        user = _require_user(conn, user_id)
        changes = req.model_dump(exclude={"product_id"})
        if changes["skill_id"] is None and changes["skill_ids"]:
            # Keep the stored primary skill, or let skill_ids pick one
            del changes["skill_id"]
        result = LeagueService().update_league(conn, league_id, changes, req.product_id, user)
        return {
            "league": result.league.to_dict(),
            "product_linked": result.product_linked,
            "warning": result.warning,
        }
