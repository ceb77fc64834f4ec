"""Rooms app package.

The room registry: hotels and their rooms with type, rates, capacity and
the declarative housekeeping status. Occupancy is never stored here; it is
derived from the booking ledger by the bookings app.
"""
