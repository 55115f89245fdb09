# Supabase table: profiles
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Avatars are stored in the storage bucket configured by settings.avatar_bucket

"""
Expected Supabase table structure:

profiles:
- id: uuid (primary key, references auth.users.id)
- first_name: text (nullable)
- last_name: text (nullable)
- avatar_url: text (nullable)
- social_media_url: text (nullable)
- onboarding_completed: boolean (default: false)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

One row per user, created at sign-up and only ever updated by its owner.
Avatar objects live at avatars/<user_id>/avatar.<ext> in the bucket.
"""
