from ridecrew.core.errors import ApiErrorCode
from ridecrew.modules.profiles.schemas import ProfileUpdate
from ridecrew.modules.profiles.service import ProfileService, display_name


def test_display_name():
    assert display_name({"first_name": "Ann", "last_name": "Lee"}) == "Ann Lee"
    assert display_name({"last_name": "Lee"}) == "Lee"
    assert display_name({}) == "Anonymous"


def test_missing_profile_is_null_data(fake_supabase, alice):
    response = ProfileService(fake_supabase, alice).get_profile("ghost")
    assert response.success is True
    assert response.data is None


def test_current_profile_needs_login(fake_supabase, anonymous):
    response = ProfileService(fake_supabase, anonymous).get_current_user_profile()
    assert response.error.code == ApiErrorCode.UNAUTHORIZED


def test_update_merges_into_session(fake_supabase, alice):
    response = ProfileService(fake_supabase, alice).update_profile("alice", ProfileUpdate(last_name="Liddell"))
    assert response.data.last_name == "Liddell"
    assert alice.profile["last_name"] == "Liddell"


def test_empty_update_is_rejected(fake_supabase, alice):
    response = ProfileService(fake_supabase, alice).update_profile("alice", ProfileUpdate())
    assert response.error.code == ApiErrorCode.VALIDATION_ERROR


def test_avatar_needs_extension(fake_supabase, alice):
    response = ProfileService(fake_supabase, alice).upload_avatar("alice", "avatar", b"x", "image/png")
    assert response.error.code == ApiErrorCode.VALIDATION_ERROR
    assert fake_supabase.storage.files == {}


def test_all_profiles_newest_first(fake_supabase, alice):
    fake_supabase.add_profile("carol", "Carol", created_at="2025-01-01T00:00:00+00:00")
    response = ProfileService(fake_supabase, alice).get_all_profiles()
    assert response.data[0].id == "carol"


def test_backend_failure_becomes_envelope(fake_supabase, alice):
    fake_supabase.fail_with = RuntimeError("connection reset")
    response = ProfileService(fake_supabase, alice).get_profile("alice")
    assert response.success is False
    assert response.error.code == ApiErrorCode.NETWORK_ERROR
