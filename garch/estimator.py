from typing import Dict, Optional
import warnings
import logging
import numpy as np
from arch import arch_model
from .models import WindowFit

logger = logging.getLogger(__name__)

# Returns are fitted in percent, as arch expects
PERCENT = 100.0

DISTRIBUTIONS = ('normal', 't', 'skewt', 'ged')


def fit_window(returns: np.ndarray,
               position: int = 0,
               distribution: str = 'normal',
               max_iter: int = 1000,
               tol: Optional[float] = None,
               starting_values: Optional[np.ndarray] = None) -> WindowFit:
    """
    Fit GARCH(1,1) with constant mean to one window and forecast one step ahead.

    Nothing is shared between calls, so windows can be fitted in any order or
    in separate processes.

    Args:
        returns: Decimal log returns of the window
        position: Window start index, carried into the result
        distribution: Innovation distribution passed to arch
        max_iter: Iteration cap for the optimizer
        tol: Optimizer convergence tolerance, arch default when None
        starting_values: Optional starting values in arch parameter order

    Returns:
        WindowFit with converged=False and a nan forecast if the fit failed
    """
    returns = np.asarray(returns, dtype=float)

    try:
        model = arch_model(
            returns * PERCENT,
            mean='constant',
            vol='GARCH',
            p=1,
            q=1,
            dist=distribution,
            rescale=True
        )

        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            result = model.fit(
                starting_values=starting_values,
                tol=tol,
                disp='off',
                show_warning=False,
                options={'maxiter': max_iter},
                update_freq=0
            )

        forecast = result.forecast(horizon=1, reindex=False)
        variance = float(forecast.variance.values[-1, 0])

        # Undo the percent conversion and arch's own rescaling
        scale = PERCENT * result.scale
        sigma = np.sqrt(variance) / scale if variance >= 0 else np.nan
        params = {name: float(value) for name, value in result.params.items()}

    except Exception as e:
        logger.debug(f"Window {position}: arch raised {type(e).__name__}: {e}")
        return WindowFit(
            position=position,
            converged=False,
            forecast=np.nan,
            message=f"{type(e).__name__}: {e}"
        )

    if result.convergence_flag != 0:
        message = f"optimizer did not converge (flag={result.convergence_flag})"
    elif not all(np.isfinite(v) for v in params.values()):
        message = "non-finite parameter estimate"
    elif not np.isfinite(sigma) or sigma <= 0:
        message = f"invalid forecast {sigma!r}"
    else:
        return WindowFit(
            position=position,
            converged=True,
            forecast=float(sigma),
            params=params,
            volatility_path=np.asarray(result.conditional_volatility) / scale
        )

    return WindowFit(
        position=position,
        converged=False,
        forecast=np.nan,
        params=params,
        message=message
    )


class GARCHEstimator:
    """Fits GARCH(1,1) to a single window of returns"""

    def __init__(self, distribution: str = 'normal', max_iter: int = 1000,
                 tol: Optional[float] = None):
        """
        Initialize estimator

        Args:
            distribution: Innovation distribution ('normal', 't', 'skewt', 'ged')
            max_iter: Iteration cap for each optimization
            tol: Convergence tolerance passed to the optimizer
        """
        if distribution not in DISTRIBUTIONS:
            raise ValueError(
                f"Unknown distribution '{distribution}', expected one of {DISTRIBUTIONS}"
            )
        if max_iter < 1:
            raise ValueError(f"max_iter must be positive, got {max_iter}")
        if tol is not None and tol <= 0:
            raise ValueError(f"tol must be positive, got {tol}")

        self.distribution = distribution
        self.max_iter = max_iter
        self.tol = tol
        self.logger = logging.getLogger('garch.estimator')

    def fit_window(self, returns: np.ndarray, position: int = 0) -> WindowFit:
        """Fit one window with this estimator's configuration"""
        result = fit_window(
            returns,
            position=position,
            distribution=self.distribution,
            max_iter=self.max_iter,
            tol=self.tol
        )
        if result.converged:
            self.logger.debug(
                f"Window {position}: omega={result.params.get('omega', np.nan):.6f} "
                f"alpha={result.params.get('alpha[1]', np.nan):.4f} "
                f"beta={result.params.get('beta[1]', np.nan):.4f} "
                f"forecast={result.forecast:.6f}"
            )
        return result

    def get_config(self) -> Dict[str, object]:
        return {'distribution': self.distribution, 'max_iter': self.max_iter, 'tol': self.tol}
