"""Booking services."""
