"""Test data factories for topics, registrations and units of work."""
