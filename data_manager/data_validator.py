"""
Data validation and stationarity checks for futures price and return series.
"""

import logging
from typing import Dict, List, Tuple
import numpy as np
import pandas as pd
from arch.unitroot import ADF

logger = logging.getLogger(__name__)

class DataValidator:
    """Validates price and return series before volatility estimation."""

    def __init__(self, significance: float = 0.05):
        self.significance = significance

        # Daily log returns beyond this are flagged, not rejected
        self.validation_bounds = {
            'price': {'min': 0, 'max': 100000},
            'abs_return': {'max': 1.0},
        }

    def validate_prices(self, prices: pd.Series) -> Tuple[bool, List[str]]:
        """
        Validates a price series.

        Args:
            prices: Prices indexed by date

        Returns:
            Tuple of (is_valid, list_of_issues)
        """
        issues = []

        if prices.empty:
            return False, ["Price series is empty"]

        if not prices.index.is_monotonic_increasing:
            issues.append("Dates are not in chronological order")
        if prices.index.has_duplicates:
            issues.append(f"Found {int(prices.index.duplicated().sum())} duplicate dates")

        values = prices.values.astype(float)
        if not np.all(np.isfinite(values)):
            issues.append(f"Found {int((~np.isfinite(values)).sum())} missing or infinite prices")

        bounds = self.validation_bounds['price']
        finite = values[np.isfinite(values)]
        out_of_bounds = (finite <= bounds['min']) | (finite > bounds['max'])
        if out_of_bounds.any():
            issues.append(
                f"Found {int(out_of_bounds.sum())} prices outside "
                f"({bounds['min']}, {bounds['max']}]"
            )

        for issue in issues:
            logger.warning(issue)

        return len(issues) == 0, issues

    def validate_returns(self, returns, window_size: int) -> None:
        """Raise ValueError if returns cannot be used with this window size."""
        values = np.asarray(returns, dtype=float)
        n = len(values)

        if isinstance(window_size, bool) or not isinstance(window_size, (int, np.integer)):
            raise ValueError(f"Window size must be an integer, got {window_size!r}")
        if window_size <= 0 or window_size >= n:
            raise ValueError(
                f"Window size {window_size} must satisfy 1 <= window_size < {n}"
            )
        if not np.all(np.isfinite(values)):
            raise ValueError("Returns contain NaN or infinite values")

        extreme = np.abs(values) > self.validation_bounds['abs_return']['max']
        if extreme.any():
            logger.warning(f"Found {int(extreme.sum())} daily log returns above 100%")

    def check_stationarity(self, returns) -> Dict[str, float]:
        """
        Augmented Dickey-Fuller test with constant and trend.

        Lag order follows the usual trunc((n - 1) ** (1/3)) rule.
        """
        values = np.asarray(returns, dtype=float)
        lags = int(np.trunc((len(values) - 1) ** (1 / 3)))

        test = ADF(values, trend='ct', lags=lags)
        stats = {
            'statistic': float(test.stat),
            'pvalue': float(test.pvalue),
            'lags': lags,
            'stationary': bool(test.pvalue < self.significance),
        }

        logger.info(
            f"ADF test: statistic={stats['statistic']:.4f}, "
            f"p-value={stats['pvalue']:.4f}, lags={lags}"
        )
        if not stats['stationary']:
            logger.warning(
                f"Unit root not rejected at {self.significance:.0%} level"
            )

        return stats
