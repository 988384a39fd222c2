from __future__ import annotations


class FormGuardError(Exception):
    """Base class for errors raised by the form store and screens."""


class NotFoundError(FormGuardError):
    """The form does not exist or is not visible to the caller."""


class AccessDenied(FormGuardError):
    """The caller is not allowed to perform the operation."""


class PolicyViolation(AccessDenied):
    """The store refused a write because of its access policy."""


class StorageError(FormGuardError):
    """The backing store failed; the operation was abandoned."""
