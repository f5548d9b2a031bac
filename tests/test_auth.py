import pytest

from projectmind.core.auth import StoreAuthenticator
from projectmind.core.errors import AuthorizationError
from projectmind.core.models import UserIdentity
from projectmind.core.storage.memory import InMemoryStore


@pytest.fixture
def auth():
    store = InMemoryStore()
    store.add_user(UserIdentity(id="u1", email="Ada@Example.com", name="Ada"))
    return StoreAuthenticator(store)


def test_resolves_by_id_email_or_mapping(auth):
    assert auth.resolve("u1").name == "Ada"
    assert auth.resolve(" ada@example.com ").id == "u1"
    assert auth.resolve({"user_id": "u1"}).id == "u1"
    assert auth.resolve({"email": "ada@example.com"}).id == "u1"


def test_unknown_or_empty_credentials_resolve_to_none(auth):
    assert auth.resolve(None) is None
    assert auth.resolve("") is None
    assert auth.resolve({"token": "abc"}) is None
    assert auth.resolve("eve@example.com") is None


def test_require_raises_for_unauthenticated_caller(auth):
    assert auth.require("u1").id == "u1"
    with pytest.raises(AuthorizationError):
        auth.require("eve@example.com")
