"""Shared pydantic schemas."""

from capstone.shared.schemas.base import BaseSchema

__all__ = ["BaseSchema"]
