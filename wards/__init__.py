"""Wards application for the hospital backend.

This package contains the bed registry, the occupancy ledger and the
allocation, transfer and discharge services together with their API
views and route registrations.
"""
