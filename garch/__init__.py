"""
GARCH modeling package for rolling volatility forecasts.
Fits GARCH(1,1) on sliding windows and collects one-step-ahead forecasts.
"""

from .estimator import GARCHEstimator, fit_window
from .forecaster import RollingGARCHForecaster, WindowFitError
from .models import WindowFit, RollingForecast

__all__ = [
    'GARCHEstimator', 'fit_window', 'RollingGARCHForecaster',
    'WindowFitError', 'WindowFit', 'RollingForecast'
]
