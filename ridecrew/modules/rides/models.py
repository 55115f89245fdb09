# Supabase table: rides
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:
- id: uuid (primary key)
- creator_id: uuid (foreign key to profiles.id, not null) - constraint name rides_creator_id_fkey
- start_time: timestamptz (not null)
- end_time: timestamptz (not null)
- preset: text (nullable) - values: now, lunch, afternoon, custom
- distance_km: integer (nullable)
- bike_type: text (nullable) - values: road, mtb, hybrid, gravel, other
- status: text (not null, default: 'open') - values: open, closed, cancelled
- starting_point_address: text (nullable)
- starting_point_coords: text (nullable) - "lat, lng", e.g. "52.37022, 4.89517"
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

Only the creator updates or deletes a ride. Deleting a ride cascades to
ride_participants (ON DELETE CASCADE on ride_participants.ride_id).
"""
