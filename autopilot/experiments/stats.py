"""Two-proportion comparison used to judge experiments."""
import numpy as np
from scipy import stats


def two_proportion_z_test(
    successes_a: int,
    n_a: int,
    successes_b: int,
    n_b: int,
) -> tuple[float, float]:
    """
    Pooled two-proportion z-test.

    Args:
        successes_a: Successes in group A (control)
        n_a: Sample size of group A
        successes_b: Successes in group B (treatment)
        n_b: Sample size of group B

    Returns:
        (z, two-sided p-value). z is positive when B outperforms A.
        Degenerate inputs (empty group, zero variance) give (0.0, 1.0).
    """
    if n_a <= 0 or n_b <= 0:
        return 0.0, 1.0

    p_a = successes_a / n_a
    p_b = successes_b / n_b
    pooled = (successes_a + successes_b) / (n_a + n_b)

    standard_error = np.sqrt(pooled * (1 - pooled) * (1 / n_a + 1 / n_b))
    if standard_error == 0:
        return 0.0, 1.0

    z = (p_b - p_a) / standard_error
    p_value = 2 * (1 - stats.norm.cdf(abs(z)))
    return float(z), float(p_value)


def confidence_from_p_value(p_value: float) -> float:
    """Confidence level (percent) that the observed difference is real."""
    return max(0.0, min(100.0, (1 - p_value) * 100))
