from types import SimpleNamespace

import pytest
from sqlalchemy import select

from tableside.database import get_db
from tableside.main import app
from tableside.models import User
from tableside.schemas import RegisterRequest
from tableside.services.registration import (
    EMAIL_TAKEN,
    INTERNAL_ERROR,
    INVALID_EMAIL,
    MISSING_FIELDS,
    PASSWORD_MISMATCH,
    PASSWORD_TOO_SHORT,
    parse_payload,
    register_user,
    validate_registration,
    verify_password,
)

SIGNUP = {
    "email": "Chef@Example.com",
    "password": "noodles123",
    "confirmPassword": "noodles123",
}


def payload(**changes):
    body = dict(SIGNUP)
    body.update(changes)
    return body


# =============================================================================
# VALIDATION
# =============================================================================

@pytest.mark.parametrize("body,message", [
    ({}, MISSING_FIELDS),
    (payload(email=""), MISSING_FIELDS),
    (payload(password="   "), MISSING_FIELDS),
    (payload(confirmPassword=None), MISSING_FIELDS),
    (payload(email="chef.example.com"), INVALID_EMAIL),
    (payload(email="chef@example"), INVALID_EMAIL),
    (payload(password="short", confirmPassword="short"), PASSWORD_TOO_SHORT),
    (payload(confirmPassword="noodles124"), PASSWORD_MISMATCH),
])
def test_validation_messages(body, message):
    assert validate_registration(parse_payload(body)) == message


def test_first_failure_wins():
    # Bad email and short mismatched password: email is checked first
    body = payload(email="nope", password="x", confirmPassword="y")
    assert validate_registration(parse_payload(body)) == INVALID_EMAIL


@pytest.mark.parametrize("raw", [None, [], "email", 42])
def test_non_object_bodies_count_as_missing(raw):
    assert parse_payload(raw) == RegisterRequest()
    assert validate_registration(parse_payload(raw)) == MISSING_FIELDS


# =============================================================================
# STORAGE
# =============================================================================

async def test_register_stores_lowercased_email_and_hash(db):
    result = await register_user(db, SIGNUP)

    assert result.status_code == 201
    assert result.success
    assert result.body["email"] == "chef@example.com"

    user = (await db.execute(select(User))).scalar_one()
    assert user.id == result.body["id"]
    assert user.password_hash != SIGNUP["password"]
    assert verify_password(user.password_hash, SIGNUP["password"])
    assert not verify_password(user.password_hash, "noodles124")


async def test_duplicate_email_is_rejected_case_insensitively(db):
    assert (await register_user(db, SIGNUP)).status_code == 201

    result = await register_user(db, payload(email="CHEF@example.COM"))
    assert result.status_code == 409
    assert result.body == {"error": EMAIL_TAKEN}


async def test_validation_failure_writes_nothing(db):
    result = await register_user(db, payload(confirmPassword="different1"))
    assert result.status_code == 400
    assert result.body == {"error": PASSWORD_MISMATCH}
    assert (await db.execute(select(User))).scalars().all() == []


# =============================================================================
# HTTP
# =============================================================================

async def test_register_endpoint_created(client):
    response = await client.post("/api/register", json=SIGNUP)

    assert response.status_code == 201
    assert response.json()["email"] == "chef@example.com"
    assert response.headers["access-control-allow-origin"] == "*"


async def test_register_endpoint_conflict(client):
    await client.post("/api/register", json=SIGNUP)
    response = await client.post("/api/register", json=SIGNUP)

    assert response.status_code == 409
    assert response.json() == {"error": "Email already registered"}


@pytest.mark.parametrize("changes,message", [
    ({"email": ""}, "Required fields are missing"),
    ({"email": "not-an-email"}, "Invalid email format"),
    ({"password": "abc", "confirmPassword": "abc"}, "Password must be at least 8 characters"),
    ({"confirmPassword": "noodles321"}, "Passwords do not match"),
])
async def test_register_endpoint_bad_request(client, changes, message):
    response = await client.post("/api/register", json=payload(**changes))

    assert response.status_code == 400
    assert response.json() == {"error": message}
    assert response.headers["access-control-allow-origin"] == "*"


async def test_register_endpoint_malformed_json(client):
    response = await client.post(
        "/api/register",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Required fields are missing"}


async def test_register_preflight(client):
    response = await client.options("/api/register")

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert "POST" in response.headers["access-control-allow-methods"]
    assert "Content-Type" in response.headers["access-control-allow-headers"]


@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
async def test_register_other_methods(client, method):
    response = await client.request(method, "/api/register")

    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}
    assert response.headers["access-control-allow-origin"] == "*"


class FailingSession:
    """Session whose every query fails, as if the database went away."""

    def __init__(self):
        self.rolled_back = False

    async def execute(self, statement):
        raise RuntimeError("connection refused: db.internal:5432")

    async def rollback(self):
        self.rolled_back = True


class StaleCheckSession:
    """
    Real session whose existence check finds nothing, as when a
    concurrent signup commits the same email between check and insert.
    """

    def __init__(self, session):
        self._session = session

    async def execute(self, statement):
        return SimpleNamespace(scalar_one_or_none=lambda: None)

    def __getattr__(self, name):
        return getattr(self._session, name)


async def test_storage_failure_is_a_bare_500():
    session = FailingSession()
    result = await register_user(session, SIGNUP)

    assert result.status_code == 500
    assert result.body == {"error": INTERNAL_ERROR}
    assert session.rolled_back


async def test_unique_index_violation_is_a_409(db):
    assert (await register_user(db, SIGNUP)).status_code == 201

    result = await register_user(StaleCheckSession(db), payload(email="CHEF@example.com"))

    assert result.status_code == 409
    assert result.body == {"error": EMAIL_TAKEN}
    emails = (await db.execute(select(User.email))).scalars().all()
    assert emails == ["chef@example.com"]


async def test_register_endpoint_hides_internal_errors(client):
    async def failing_db():
        yield FailingSession()

    app.dependency_overrides[get_db] = failing_db

    response = await client.post("/api/register", json=SIGNUP)

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
    assert "db.internal" not in response.text
    assert response.headers["access-control-allow-origin"] == "*"
