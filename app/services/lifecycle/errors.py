# app/services/lifecycle/errors.py
"""Lifecycle exceptions."""


class LifecycleError(Exception):
    """Base class for lifecycle errors."""


class LifecycleInvariantError(LifecycleError):
    """
    A case's stored lifecycle fields contradict each other.

    Indicates a bug, never a runtime condition to recover from. The scanner
    rolls back the offending record and reports it.
    """

    def __init__(self, case_id, message: str):
        self.case_id = case_id
        super().__init__(f"Case {case_id}: {message}")


class InvalidTransitionError(LifecycleError):
    """A state transition was requested from the wrong state."""


class SealError(LifecycleError):
    """Base class for sealing failures."""


class SealNotAllowedError(SealError):
    """The case's entitlements do not allow sealing this phase."""


class AlreadySealedError(SealError):
    """The phase is already sealed; seals are permanent."""
