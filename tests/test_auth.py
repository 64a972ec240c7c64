from datetime import timedelta

import pytest

from auth import USERS_COLLECTION, AuthGateway, CredentialProvider
from errors import AuthError


@pytest.fixture
def provider(db):
    return CredentialProvider(db, admin_emails=["owner@repairshop.com"])


@pytest.fixture
def gateway(provider):
    return AuthGateway(provider)


def test_register_signs_in_and_hashes_password(gateway, provider, db):
    user = gateway.register("Tech@RepairShop.com", "pa55word")

    assert user is not None
    assert user.email == "tech@repairshop.com"
    assert user.role is None
    assert provider.current_user == user
    assert provider.token
    stored = db[USERS_COLLECTION].find_one({"email": "tech@repairshop.com"})
    assert stored["password_hash"] != "pa55word"
    assert stored["created_at"] is not None


def test_register_bootstrap_admin(gateway):
    assert gateway.register("owner@repairshop.com", "pa55word").role == "admin"


def test_register_duplicate_returns_none(gateway):
    assert gateway.register("tech@repairshop.com", "pa55word")
    assert gateway.register("tech@repairshop.com", "other") is None


def test_register_requires_credentials(provider):
    with pytest.raises(AuthError):
        provider.create_user("", "pw")


def test_login(db, gateway):
    CredentialProvider(db).create_user("tech@repairshop.com", "pa55word")

    assert gateway.login("tech@repairshop.com", "wrong") is None
    assert gateway.login("nobody@repairshop.com", "pa55word") is None
    user = gateway.login("tech@repairshop.com", "pa55word")
    assert user.email == "tech@repairshop.com"
    assert gateway.get_current_user() == user


def test_login_inactive_user(db, gateway):
    CredentialProvider(db).create_user("tech@repairshop.com", "pa55word")
    db[USERS_COLLECTION].update_one({"email": "tech@repairshop.com"}, {"$set": {"is_active": False}})
    assert gateway.login("tech@repairshop.com", "pa55word") is None


def test_logout_clears_session(gateway):
    gateway.register("tech@repairshop.com", "pa55word")
    assert gateway.logout() is True
    assert gateway.get_current_user() is None
    assert gateway.token is None


def test_get_current_user_without_session(gateway):
    assert gateway.get_current_user() is None


def test_listener_fires_immediately_and_on_change(provider):
    seen = []
    unsubscribe = provider.on_auth_state_changed(seen.append)
    user = provider.create_user("tech@repairshop.com", "pa55word")
    provider.sign_out()
    unsubscribe()
    provider.sign_in("tech@repairshop.com", "pa55word")

    assert seen == [None, user, None]


def test_get_current_user_leaves_no_listener(provider, gateway):
    gateway.get_current_user()
    assert provider._listeners == []


def test_restore_session_from_token(db, provider):
    user = provider.create_user("tech@repairshop.com", "pa55word")
    token = provider.token

    other = CredentialProvider(db)
    restored = other.restore_session(token)
    assert restored.id == user.id
    assert AuthGateway(other).get_current_user() == restored


def test_restore_session_picks_up_role_changes(db, provider):
    user = provider.create_user("tech@repairshop.com", "pa55word")
    provider.update_user(user.id, {"role": "staff"})
    assert CredentialProvider(db).restore_session(provider.token).role == "staff"
    assert provider.current_user.role == "staff"


@pytest.mark.parametrize("token", ["garbage", ""])
def test_restore_session_rejects_bad_tokens(provider, token):
    with pytest.raises(AuthError):
        provider.restore_session(token)


def test_restore_session_rejects_expired_and_foreign_tokens(db, provider):
    user = provider.create_user("tech@repairshop.com", "pa55word")
    expired = provider.create_access_token(user, expires_delta=timedelta(minutes=-1))
    with pytest.raises(AuthError):
        provider.restore_session(expired)

    foreign = CredentialProvider(db, secret_key="another-secret").create_access_token(user)
    with pytest.raises(AuthError):
        provider.restore_session(foreign)


def test_get_user_hides_password_hash(provider):
    user = provider.create_user("tech@repairshop.com", "pa55word")
    public = provider.get_user(user.id)
    assert public["id"] == user.id
    assert "password_hash" not in public
    assert provider.get_user("missing") is None


def test_gateway_swallows_storage_errors(broken_db):
    gateway = AuthGateway(CredentialProvider(broken_db))
    assert gateway.register("tech@repairshop.com", "pa55word") is None
    assert gateway.login("tech@repairshop.com", "pa55word") is None


@pytest.mark.parametrize("email", ["not-an-email", "tech@", "tech@@repairshop.com"])
def test_register_malformed_email_returns_none(gateway, db, email):
    assert gateway.register(email, "pa55word") is None
    assert gateway.get_current_user() is None
    assert db[USERS_COLLECTION].count_documents({}) == 0


def test_create_user_malformed_email_raises_auth_error(provider):
    with pytest.raises(AuthError, match="Email format is invalid"):
        provider.create_user("not-an-email", "pa55word")


def test_signed_out_token_cannot_be_restored(db, provider):
    provider.create_user("tech@repairshop.com", "pa55word")
    token = provider.token
    provider.sign_out()

    with pytest.raises(AuthError):
        CredentialProvider(db).restore_session(token)


def test_sign_out_only_revokes_its_own_token(db, provider):
    provider.create_user("tech@repairshop.com", "pa55word")
    first = provider.token
    other = CredentialProvider(db)
    other.sign_in("tech@repairshop.com", "pa55word")
    second = other.token

    provider.sign_out()
    assert CredentialProvider(db).restore_session(second).email == "tech@repairshop.com"
    with pytest.raises(AuthError):
        CredentialProvider(db).restore_session(first)


def test_token_without_session_id_is_rejected(db, provider):
    from jose import jwt

    user = provider.create_user("tech@repairshop.com", "pa55word")
    bare = jwt.encode({"sub": user.id}, provider.secret_key, algorithm=provider.algorithm)
    with pytest.raises(AuthError):
        CredentialProvider(db).restore_session(bare)


def test_logout_reports_storage_failure(provider, broken_db):
    gateway = AuthGateway(provider)
    gateway.register("tech@repairshop.com", "pa55word")
    provider.db = broken_db

    assert gateway.logout() is False
    assert gateway.get_current_user() is not None
