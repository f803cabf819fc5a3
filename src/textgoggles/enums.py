"""Shared base for the state enums."""

from __future__ import annotations

from enum import Enum


class StrEnum(str, Enum):
    """Enum whose members compare equal to their string values."""
