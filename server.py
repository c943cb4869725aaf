"""FastAPI service exposing accounts and the derived read API as JSON."""

import logging
import os
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

import auth
from insights import (
    DEFAULT_TIME_RANGE,
    Allocation,
    dashboard_summary,
    entities_allocation,
    expense_category_data,
    financial_overview,
    generate_tips,
    investment_data,
    monthly_expense_data,
    portfolio_summary,
    savings_data,
)
from models import AuthenticationError, Entities, InvalidEntryError, Session
from storage import get_store
from trackers import load_entities

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

app = FastAPI(title="FinTrack API", version="0.1.0")

_store = None


def get_store_dependency():
    global _store
    if _store is None:
        _store = get_store()
    return _store


def current_session(authorization: Optional[str] = Header(None), store=Depends(get_store_dependency)) -> Session:
    scheme, _, token = (authorization or "").partition(" ")
    # Unknown and expired tokens both come back as None.
    session = auth.restore_session(store, token) if scheme.lower() == "bearer" else None
    if session is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return session


@app.exception_handler(InvalidEntryError)
async def invalid_entry_handler(request: Request, exc: InvalidEntryError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(AuthenticationError)
async def authentication_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(status_code=401, content={"detail": str(exc)})


# --- Accounts ---

class SignupRequest(BaseModel):
    name: str
    email: str
    password: str = Field(..., min_length=auth.MIN_PASSWORD_LENGTH)


class LoginRequest(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    language: str


class TokenResponse(BaseModel):
    token: str
    user: UserOut


def _issue_token(session: Session) -> TokenResponse:
    token = auth.issue_token(session)
    user = session.user
    return TokenResponse(token=token, user=UserOut(id=user.id, name=user.name, email=user.email, language=user.language))


@app.post("/auth/signup", response_model=TokenResponse, status_code=201)
async def signup(req: SignupRequest, store=Depends(get_store_dependency)):
    return _issue_token(auth.signup(store, req.name, req.email, req.password))


@app.post("/auth/login", response_model=TokenResponse)
async def login(req: LoginRequest, store=Depends(get_store_dependency)):
    return _issue_token(auth.login(store, req.email, req.password))


@app.post("/auth/logout", status_code=204)
async def logout(session: Session = Depends(current_session)):
    auth.logout(session)


# --- Read API ---

def _entities(session: Session) -> Entities:
    return load_entities(session.store, session.user_id)


@app.get("/entities", response_model=Entities)
async def entities(session: Session = Depends(current_session)):
    return _entities(session)


@app.get("/insights/categories")
async def categories(
    time_range: str = Query(DEFAULT_TIME_RANGE),
    as_of: Optional[datetime] = None,
    session: Session = Depends(current_session),
) -> List[dict]:
    return expense_category_data(_entities(session).expenses, time_range, as_of)


@app.get("/insights/monthly")
async def monthly(
    time_range: str = Query(DEFAULT_TIME_RANGE),
    as_of: Optional[datetime] = None,
    session: Session = Depends(current_session),
) -> List[dict]:
    return monthly_expense_data(_entities(session).expenses, time_range, as_of)


@app.get("/insights/savings")
async def savings(session: Session = Depends(current_session)) -> List[dict]:
    return savings_data(_entities(session).savings)


@app.get("/insights/investments")
async def investments(session: Session = Depends(current_session)):
    holdings = _entities(session).investments
    return {"rows": investment_data(holdings), "summary": portfolio_summary(holdings)}


@app.get("/insights/allocation", response_model=Allocation)
async def allocation(
    time_range: str = Query(DEFAULT_TIME_RANGE),
    as_of: Optional[datetime] = None,
    session: Session = Depends(current_session),
):
    return entities_allocation(_entities(session), time_range, as_of)


@app.get("/insights/overview")
async def overview(
    time_range: str = Query(DEFAULT_TIME_RANGE),
    as_of: Optional[datetime] = None,
    session: Session = Depends(current_session),
):
    return financial_overview(_entities(session), time_range, as_of)


@app.get("/insights/tips")
async def tips(
    time_range: str = Query(DEFAULT_TIME_RANGE),
    as_of: Optional[datetime] = None,
    session: Session = Depends(current_session),
):
    return {"tips": generate_tips(_entities(session), time_range, as_of)}


@app.get("/dashboard")
async def dashboard(as_of: Optional[datetime] = None, session: Session = Depends(current_session)):
    return dashboard_summary(_entities(session), as_of)


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server:app", host="127.0.0.1", port=8001, reload=True)
