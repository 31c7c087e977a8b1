"""Booking core services: availability store, cart engine, checkout and reconciliation."""
