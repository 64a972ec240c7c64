import mongomock
import pytest
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

import main
from auth import USERS_COLLECTION, CredentialProvider
from schemas import Principal


class _BrokenCollection:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise ServerSelectionTimeoutError("store unavailable")
        return fail


class BrokenDatabase:
    """Stands in for a database whose server cannot be reached."""

    name = "broken"

    def __getitem__(self, collection_name):
        return _BrokenCollection()

    def list_collection_names(self):
        raise ServerSelectionTimeoutError("store unavailable")


@pytest.fixture
def db():
    return mongomock.MongoClient()["repairshop_test"]


@pytest.fixture
def broken_db():
    return BrokenDatabase()


@pytest.fixture
def staff():
    return Principal(id="64b000000000000000000001", email="staff@repairshop.com", role="staff")


@pytest.fixture
def admin():
    return Principal(id="64b000000000000000000002", email="admin@repairshop.com", role="admin")


@pytest.fixture
def client(db):
    main.app.dependency_overrides[main.get_db] = lambda: db
    main.app.dependency_overrides[main.get_database] = lambda: db
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Create an account with the given role and return (principal, auth headers)."""
    def _make(email, role=None, password="s3cret-pass"):
        provider = CredentialProvider(db)
        principal = provider.create_user(email, password)
        if role is not None:
            db[USERS_COLLECTION].update_one({"email": principal.email}, {"$set": {"role": role}})
            principal = principal.model_copy(update={"role": role})
        token = provider.create_access_token(principal)
        return principal, {"Authorization": f"Bearer {token}"}
    return _make
