import pytest

from ridecrew.core.dependencies import resolve_session
from ridecrew.core.errors import AppError, ApiErrorCode
from ridecrew.core.session import SessionContext
from ridecrew.modules.auth.service import AuthService


def test_anonymous_session():
    session = SessionContext.anonymous()
    assert session.is_authenticated is False
    assert session.user_id is None
    assert session.onboarding_completed is None
    with pytest.raises(AppError) as exc:
        session.require_user_id("join a ride")
    assert exc.value.code == ApiErrorCode.UNAUTHORIZED
    assert exc.value.user_message == "Please log in to join a ride."


def test_merge_profile_only_reports_known_changed_fields(alice):
    changed = alice.merge_profile({"first_name": "Alicia", "last_name": None, "is_admin": True})
    assert changed == {"first_name": "Alicia"}
    assert alice.profile["first_name"] == "Alicia"
    assert "is_admin" not in alice.profile


def test_resolve_session_loads_profile(fake_supabase):
    fake_supabase.auth.add_user("tok", "alice", "alice@ridecrew.io")
    session = resolve_session("tok", fake_supabase)
    assert session.user_id == "alice"
    assert session.profile["first_name"] == "Alice"
    assert session.onboarding_completed is True


def test_resolve_session_with_bad_token(fake_supabase):
    assert resolve_session("bogus", fake_supabase).is_authenticated is False
    assert resolve_session(None, fake_supabase).is_authenticated is False


def test_user_lookups_are_cached(fake_supabase):
    fake_supabase.auth.add_user("tok", "alice", "alice@ridecrew.io")
    service = AuthService(fake_supabase)
    first = service.resolve_user("tok")
    del fake_supabase.auth.tokens["tok"]
    assert service.resolve_user("tok") == first


def test_sign_out_forgets_cached_token(fake_supabase):
    fake_supabase.auth.add_user("tok", "alice", "alice@ridecrew.io")
    service = AuthService(fake_supabase)
    service.resolve_user("tok")
    del fake_supabase.auth.tokens["tok"]
    assert service.sign_out("tok").success is True
    assert service.resolve_user("tok") is None
    assert fake_supabase.auth.signed_out is True


def test_update_password_for_caller(fake_supabase, alice):
    fake_supabase.auth.add_user("tok", "alice", "alice@ridecrew.io")
    response = AuthService(fake_supabase).update_password(alice, "new-secret")
    assert response.success is True
    assert fake_supabase.auth.passwords["alice@ridecrew.io"] == "new-secret"


def test_reset_password_sends_redirect(fake_supabase):
    AuthService(fake_supabase).reset_password("alice@ridecrew.io")
    [(email, options)] = fake_supabase.auth.reset_emails
    assert email == "alice@ridecrew.io"
    assert "redirect_to" in options
