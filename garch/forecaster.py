from typing import List, Optional, Union
from concurrent.futures import ProcessPoolExecutor
import logging
import os
import numpy as np
import pandas as pd
from .estimator import GARCHEstimator
from .models import WindowFit, RollingForecast
from utils.progress import ProgressMonitor
from data_manager.data_validator import DataValidator

FAILURE_POLICIES = ('nan', 'raise')


class WindowFitError(RuntimeError):
    """Raised when a window fit fails under the 'raise' policy"""

    def __init__(self, fit: WindowFit):
        self.fit = fit
        super().__init__(f"GARCH fit failed for window {fit.position}: {fit.message}")


def _fit_task(args: tuple) -> WindowFit:
    estimator, window, position = args
    return estimator.fit_window(window, position=position)


class RollingGARCHForecaster:
    """Re-estimates GARCH(1,1) on a sliding window and collects one-step-ahead forecasts"""

    def __init__(self,
                 window_size: int = 30,
                 estimator: Optional[GARCHEstimator] = None,
                 on_failure: str = 'nan',
                 n_jobs: int = 1,
                 show_progress: bool = False):
        """
        Initialize forecaster

        Args:
            window_size: Number of returns in each estimation window
            estimator: Single-window estimator, defaults to normal GARCH(1,1)
            on_failure: 'nan' marks failed windows, 'raise' aborts the run
            n_jobs: Worker processes for window fits, -1 for all cores
            show_progress: Show a tqdm progress bar
        """
        if on_failure not in FAILURE_POLICIES:
            raise ValueError(
                f"on_failure must be one of {FAILURE_POLICIES}, got '{on_failure}'"
            )
        if n_jobs == 0 or n_jobs < -1:
            raise ValueError(f"n_jobs must be positive or -1, got {n_jobs}")

        self.window_size = window_size
        self.estimator = estimator or GARCHEstimator()
        self.on_failure = on_failure
        self.n_jobs = n_jobs
        self.show_progress = show_progress
        self.validator = DataValidator()
        self.logger = logging.getLogger('garch.forecaster')

    def _n_workers(self) -> int:
        n_cores = os.cpu_count() or 1
        if self.n_jobs == -1:
            return n_cores
        return min(self.n_jobs, n_cores)

    def _run_windows(self, values: np.ndarray) -> List[WindowFit]:
        n_windows = len(values) - self.window_size
        tasks = (
            (self.estimator, values[k:k + self.window_size], k)
            for k in range(n_windows)
        )

        monitor = None
        if self.show_progress:
            monitor = ProgressMonitor(total=n_windows, desc="Rolling GARCH",
                                      logger=self.logger)

        fits: List[WindowFit] = []
        n_workers = min(self._n_workers(), n_windows)
        try:
            if n_workers > 1:
                with ProcessPoolExecutor(max_workers=n_workers) as executor:
                    futures = [executor.submit(_fit_task, task) for task in tasks]
                    try:
                        # Collected in window order, not completion order
                        for future in futures:
                            fit = future.result()
                            self._check_fit(fit)
                            fits.append(fit)
                            if monitor:
                                monitor.update(fit)
                    except BaseException:
                        cancelled = sum(future.cancel() for future in futures)
                        self.logger.info(f"Cancelled {cancelled} pending window fits")
                        raise
            else:
                for task in tasks:
                    fit = _fit_task(task)
                    self._check_fit(fit)
                    fits.append(fit)
                    if monitor:
                        monitor.update(fit)
        finally:
            if monitor:
                monitor.close()

        return fits

    def _check_fit(self, fit: WindowFit) -> None:
        if fit.converged:
            return
        if self.on_failure == 'raise':
            self.logger.error(f"Aborting rolling estimation at window {fit.position}: {fit.message}")
            raise WindowFitError(fit)
        self.logger.warning(f"Window {fit.position} failed, marked as NaN: {fit.message}")

    def generate_rolling_forecasts(self,
                                   returns: Union[np.ndarray, pd.Series]) -> RollingForecast:
        """
        Generate one-step-ahead volatility forecasts over a sliding window.

        Element k is fitted on returns[k:k+window_size] only and forecasts
        the conditional standard deviation at k+window_size.

        Args:
            returns: Decimal log returns, ordered by time

        Returns:
            RollingForecast with len(returns) - window_size elements
        """
        index = returns.index if isinstance(returns, pd.Series) else None
        values = np.asarray(returns, dtype=float)

        try:
            self.validator.validate_returns(values, self.window_size)
        except ValueError as e:
            self.logger.error(f"Invalid rolling estimation input: {str(e)}")
            raise

        n_windows = len(values) - self.window_size
        self.logger.info(
            f"\nRolling window setup:"
            f"\n  Total observations: {len(values)}"
            f"\n  Window size: {self.window_size}"
            f"\n  Number of windows: {n_windows}"
            f"\n  Distribution: {self.estimator.distribution}"
            f"\n  Failure policy: {self.on_failure}"
            f"\n  Workers: {min(self._n_workers(), n_windows)}"
        )

        fits = self._run_windows(values)

        forecast = RollingForecast(
            window_size=self.window_size,
            distribution=self.estimator.distribution,
            on_failure=self.on_failure,
            forecasts=np.array([fit.forecast for fit in fits], dtype=float),
            converged=np.array([fit.converged for fit in fits], dtype=bool),
            index=index[self.window_size:] if index is not None else None,
            messages=[fit.message for fit in fits]
        )

        if forecast.n_failed:
            self.logger.warning(f"{forecast.n_failed}/{n_windows} window fits failed")
        self.logger.info(f"Completed {n_windows} rolling window forecasts")

        return forecast
