"""
DI-specific faults with rich diagnostics.
"""

from typing import List, Optional

from ..faults.core import Fault, FaultDomain, Severity


class DIError(Fault):
    """Base fault for dependency injection errors."""

    def __init__(self, code: str, message: str, *, metadata: Optional[dict] = None):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.DI,
            severity=Severity.FATAL,
            metadata=metadata,
        )


class MissingBindingError(DIError):
    """A dependency has no registered binding."""

    def __init__(self, token: str, requested_by: Optional[str] = None):
        self.token = token
        self.requested_by = requested_by

        msg = f"No binding registered for '{token}'"
        if requested_by:
            msg += f" (required by '{requested_by}')"
        msg += "\n\nSuggested fixes:"
        msg += f"\n  - Register '{token}' with app.singleton(...) or app.scoped(...)"
        msg += "\n  - Give the constructor parameter a default value to make it optional"

        super().__init__(
            "MISSING_BINDING",
            msg,
            metadata={"token": token, "requested_by": requested_by},
        )


class CyclicDependencyError(DIError):
    """Circular dependency detected during resolution or validation."""

    def __init__(self, cycle: List[str]):
        self.cycle = cycle

        msg = "Detected dependency cycle:"
        for i, token in enumerate(cycle):
            arrow = " ->" if i < len(cycle) - 1 else ""
            msg += f"\n  {token}{arrow}"
        msg += "\n\nSuggested fixes:"
        msg += "\n  - Extract the shared part into a third service"
        msg += "\n  - Restructure dependencies to remove the cycle"

        super().__init__(
            "DEPENDENCY_CYCLE",
            msg,
            metadata={"cycle": list(cycle)},
        )
