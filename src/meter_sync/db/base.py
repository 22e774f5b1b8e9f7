"""Declarative bases for the two independently-owned stores."""

from sqlalchemy.orm import DeclarativeBase


class LocalBase(DeclarativeBase):
    """Base for tables owned by the edge-resident local store."""


class RemoteBase(DeclarativeBase):
    """Base for the subset of the central store this service reads."""
