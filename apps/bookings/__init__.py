"""Bookings app package.

The reservation ledger: bookings, their room lines and extras, and the
per-night claims that keep two blocking bookings off the same room on the
same night. Holds on unpaid bookings lapse on their own; the sweeps in
``tasks`` tidy them up. Read models for availability and the room board
live in ``application.queries``.
"""
