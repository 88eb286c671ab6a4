"""
Solver settings.

Settings can be given as an :class:`IPMSettings` instance or as a plain
``params`` dictionary; the dictionary also accepts the spelling variants
``max_iterations`` and ``tol``.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping, Optional, Union

from .exceptions import InvalidInputError

_ALIASES = {
    "max_iterations": "max_iters",
    "iter_max": "max_iters",
    "tol": "tolerance",
}


@dataclass
class IPMSettings:
    """
    Interior-point tuning.

    Attributes:
        max_iters: Iteration cap
        tolerance: Max-norm target for the stationarity, dynamics and
            inequality residuals
        mu_max: Target complementarity (average lambda * t)
        alpha_min: Smallest accepted step length
        mu0: Initial barrier value
        regularization: Added to the diagonal of every Riccati Hessian
        verbose: Log the iteration trace at INFO instead of DEBUG
    """
    max_iters: int = 20
    tolerance: float = 1e-8
    mu_max: float = 1e-12
    alpha_min: float = 1e-8
    mu0: float = 2.0
    regularization: float = 0.0
    verbose: bool = False

    def __post_init__(self):
        if int(self.max_iters) != self.max_iters or self.max_iters < 1:
            raise InvalidInputError(
                f"max_iters must be a positive integer, got {self.max_iters}"
            )
        self.max_iters = int(self.max_iters)
        for name in ("tolerance", "mu_max", "alpha_min", "mu0"):
            if not getattr(self, name) > 0:
                raise InvalidInputError(
                    f"{name} must be positive, got {getattr(self, name)}"
                )
        if self.alpha_min >= 1.0:
            raise InvalidInputError(
                f"alpha_min must be below 1, got {self.alpha_min}"
            )
        if self.regularization < 0:
            raise InvalidInputError(
                f"regularization must be non-negative, got {self.regularization}"
            )

    @classmethod
    def from_params(
        cls,
        params: Optional[Union["IPMSettings", Mapping[str, Any]]] = None,
    ) -> "IPMSettings":
        """
        Build settings from ``None``, a dict or an existing instance.

        Raises:
            InvalidInputError: On unknown keys or invalid values.
        """
        if params is None:
            return cls()
        if isinstance(params, cls):
            return params

        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in dict(params).items():
            key = _ALIASES.get(key, key)
            if key not in known:
                raise InvalidInputError(
                    f"unknown setting '{key}'. Known settings: {sorted(known)}"
                )
            kwargs[key] = value
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
