# Supabase table: ride_participants
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:
- ride_id: uuid (foreign key to rides.id, ON DELETE CASCADE)
- user_id: uuid (foreign key to profiles.id) - constraint name ride_participants_user_id_fkey
- created_at: timestamp (default: now()) - the join time

A row means the user has joined the ride. At most one row per (ride_id, user_id)
and never one for the ride's own creator; both rules are checked in
ParticipantService before inserting.
"""
