"""Regularized incomplete beta function: general-purpose numerical utility.

Evaluates ``I_x(a, b)``, the CDF of a Beta(a, b) distribution, for any
positive shape parameters via ``scipy.special.betainc``.

Position sizing uses the exact closed form for Beta(2, 5) and never calls
into this module; it exists for other shape parameters.
"""

import math

from scipy import special


def regularized_incomplete_beta(x: float, a: float, b: float) -> float:
    """Return ``I_x(a, b)`` in [0, 1].

    Args:
        x: Evaluation point.  Values outside [0, 1] are clamped.
        a: First shape parameter (> 0).
        b: Second shape parameter (> 0).

    Raises:
        ValueError: If a shape parameter is non-positive or *x* is NaN.
    """
    if a <= 0 or b <= 0:
        raise ValueError(f"shape parameters must be positive, got a={a}, b={b}")
    if math.isnan(x):
        raise ValueError("x must not be NaN")
    if x <= 0.0:
        return 0.0
    if x >= 1.0:
        return 1.0
    return min(1.0, max(0.0, float(special.betainc(a, b, x))))
