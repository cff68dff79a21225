# src/istiqamah/core/errors.py

"""
Error taxonomy of the practice engine.

None of these is fatal: stores catch PersistenceError/ReadError, log them and
keep operating on in-memory state. Only ValidationError reaches callers.
"""

from __future__ import annotations


class PracticeError(Exception):
    """Base class for engine errors."""


class ValidationError(PracticeError, ValueError):
    """Invalid input to a mutating operation (e.g. empty task title)."""


class PersistenceError(PracticeError):
    """A write to the storage backend failed (disk, network, HTTP status)."""


class ReadError(PracticeError):
    """A read from the storage backend failed or returned garbage."""
