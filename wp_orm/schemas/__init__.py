"""Pydantic schemas for serializing wp-orm models."""

from .post import PostRead

__all__ = ["PostRead"]
