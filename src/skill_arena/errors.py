# src/skill_arena/errors.py

"""
Error taxonomy shared by the engines and adapters.

- ConfigurationError: unknown/malformed skill or engine configuration (fatal at startup)
- ValidationError: malformed Task/Submission fields
- IntegrityCheckError: the submission corpus could not be consulted
- RotationStoreError: the task store could not be read or written
"""

from __future__ import annotations


class ArenaError(Exception):
    """Base class for all skill_arena errors."""


class ConfigurationError(ArenaError):
    pass


class ValidationError(ArenaError, ValueError):
    pass


class IntegrityCheckError(ArenaError):
    """
    The integrity check could not be completed.

    This is an *undetermined* result, never a "no match" result.
    The caller decides whether to block or route to manual review.
    """


class RotationStoreError(ArenaError):
    pass
