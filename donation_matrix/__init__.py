"""Donation matrix level progression and queue allocation engine."""
