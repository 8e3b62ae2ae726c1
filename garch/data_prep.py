"""
Prepare log returns for GARCH estimation.
"""

import logging
import pandas as pd
import numpy as np

logger = logging.getLogger(__name__)

class GarchDataPrep:
    """Prepares futures prices for GARCH estimation."""

    def prepare_returns(self, prices: pd.Series) -> pd.Series:
        """
        Compute daily log returns from a price series.

        Args:
            prices: Prices indexed by date

        Returns:
            Log returns, first observation dropped
        """
        prices = prices.sort_index().astype(float)

        if (prices <= 0).any():
            bad = prices[prices <= 0]
            raise ValueError(
                f"Cannot take log of {len(bad)} non-positive prices, first at {bad.index[0]}"
            )

        log_returns = np.log(prices).diff().dropna()
        log_returns.name = 'log_return'

        logger.info(
            f"Prepared log returns:\n"
            f"  Observations: {len(log_returns)}\n"
            f"  Mean: {log_returns.mean():.6f}\n"
            f"  Std:  {log_returns.std():.6f}"
        )

        return log_returns

    def verify_data_quality(self, returns: pd.Series, min_observations: int = 31,
                            max_identical_run: int = 5) -> bool:
        """
        Verify data quality for GARCH estimation.

        Args:
            returns: Series of log returns
            min_observations: Minimum required observations (one window plus one)
            max_identical_run: Longest tolerated run of identical consecutive returns

        Returns:
            bool indicating if data meets quality requirements
        """
        if len(returns) < min_observations:
            logger.warning(f"Insufficient observations: {len(returns)} < {min_observations}")
            return False

        if not np.all(np.isfinite(returns.values)):
            logger.warning("Returns contain NaN or infinite values")
            return False

        # Stale prices show up as runs of zero (or otherwise identical) returns
        runs = (returns != returns.shift()).cumsum()
        longest = int(returns.groupby(runs).size().max())
        if longest > max_identical_run:
            logger.warning(f"Found sequence of {longest} identical returns")
            return False

        return True
