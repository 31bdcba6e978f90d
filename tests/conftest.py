import mongomock
import pytest
from fastapi.testclient import TestClient

import auth
import main
from payments import PaymentBridge
from verification import MockGovernmentVerifier

PASSWORD = "secret123"


@pytest.fixture
def db():
    return mongomock.MongoClient().db


@pytest.fixture
def client(db):
    main.app.dependency_overrides[main.get_db] = lambda: db
    main.app.dependency_overrides[main.get_bridge] = lambda: PaymentBridge(None, None)
    main.app.dependency_overrides[main.get_verifier] = lambda: MockGovernmentVerifier(delay_scale=0)
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Sign up a user with the given role; returns (headers, profile)."""
    counter = {"n": 0}

    def _make(role="user", name="Asha Verma"):
        counter["n"] += 1
        email = f"{role}{counter['n']}@example.com"
        signup_role = "user" if role == "admin" else role
        result = auth.sign_up(db, email, PASSWORD, name, role=signup_role)
        uid = result.user["id"]
        if role == "admin":
            db["users"].update_one({"_id": uid}, {"$set": {"role": "admin"}})
        return {"Authorization": f"Bearer {result.token}"}, db["users"].find_one({"_id": uid})

    return _make


@pytest.fixture
def product(db):
    doc = {
        "_id": "prod-bed",
        "name": "Hospital Bed",
        "price": 35000,
        "category": "Medical Equipment",
        "stock": 5,
        "merchant_id": "MER1",
        "available_for_rent": True,
        "rent_price": 150,
        "rent_period": "daily",
        "min_rent_duration": 7,
        "max_rent_duration": 180,
        "security_deposit": 5000,
        "version": 1,
    }
    db["products"].insert_one(doc)
    return doc
