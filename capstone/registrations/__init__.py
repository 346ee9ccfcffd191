"""Registrations module: capacity oracle and student/lecturer admission control."""
