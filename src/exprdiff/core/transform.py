"""
Base transformation framework for immutable matrix operations.

Transformations are pure functions over BioMatrix: they take a matrix and
return a new one, leaving the input untouched. Parameters are recorded on
the instance so a run manifest can state exactly what was applied.

Examples:
    >>> from exprdiff.core.transform import Transform
    >>> from exprdiff.stats.transforms import Log2Transform
    >>>
    >>> transform = Log2Transform(fill_value=0.0)
    >>> errors = transform.validate(matrix)
    >>> if not errors:
    ...     logged = transform.apply(matrix)
    >>> print(transform)
    Log2Transform(fill_value=0.0)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from exprdiff.core.biomatrix import BioMatrix

__all__ = ['Transform']


class Transform(ABC):
    """
    Abstract base class for all matrix transformations.

    Attributes:
        name: Human-readable transformation name (e.g., "Log2Transform")
        params: JSON-serializable parameters used for this transformation
        timestamp: When this transform instance was created (for audit trail)
    """

    def __init__(self, name: str, params: dict[str, Any]) -> None:
        self.name = name
        self.params = params
        self.timestamp = datetime.now()

    @abstractmethod
    def apply(self, matrix: BioMatrix) -> BioMatrix:
        """
        Execute transformation and return new matrix.

        Must never modify the input matrix.

        Raises:
            ValueError: If transformation cannot be applied (check validate() first)
        """

    def validate(self, matrix: BioMatrix) -> list[str]:
        """
        Check preconditions before applying transformation.

        Subclasses should override and call super().validate() first.

        Returns:
            List of error messages (empty list = valid)
        """
        errors: list[str] = []

        if matrix.data.size == 0:
            errors.append("Cannot process empty matrix")

        return errors

    def to_dict(self) -> dict[str, Any]:
        """Provenance record for run manifests."""
        return {
            'name': self.name,
            'params': dict(self.params),
            'timestamp': self.timestamp.isoformat(),
        }

    def __repr__(self) -> str:
        params_str = ", ".join(f"{k}={v}" for k, v in self.params.items())
        return f"{self.name}({params_str})"
