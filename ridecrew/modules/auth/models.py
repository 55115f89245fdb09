# Supabase Auth
# Accounts live in Supabase's auth.users table; no custom table is needed here.
# A matching row in public.profiles is created right after sign-up (see
# modules/profiles/models.py) and gates the onboarding redirect.

"""
Supabase Auth calls used by AuthService:
- auth.sign_up() - register a new rider
- auth.sign_in_with_password() - exchange credentials for a session
- auth.get_user(jwt=...) - resolve the caller from a bearer token
- auth.sign_out() - end the session
- auth.reset_password_for_email() - send the password reset mail
- auth.admin.update_user_by_id() - set a new password (service role key)
"""
