import sys
import os

# Add project root to Python path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.append(project_root)

import pytest
import numpy as np
import pandas as pd
import time
import garch.forecaster as forecaster_module
from garch.forecaster import RollingGARCHForecaster, WindowFitError, _fit_task
from garch.estimator import GARCHEstimator
from garch.models import WindowFit, RollingForecast

@pytest.fixture
def normal_returns():
    """500 i.i.d. standard normal returns"""
    rng = np.random.default_rng(42)
    return rng.standard_normal(500)

@pytest.fixture
def short_returns():
    rng = np.random.default_rng(7)
    return rng.normal(0, 0.02, 70)

@pytest.fixture
def forecaster():
    """Create forecaster instance with test configuration"""
    return RollingGARCHForecaster(window_size=30, estimator=GARCHEstimator())

def test_initialization(forecaster):
    """Test forecaster initialization"""
    assert forecaster.window_size == 30
    assert forecaster.on_failure == 'nan'
    assert forecaster.n_jobs == 1
    assert isinstance(forecaster.estimator, GARCHEstimator)

def test_invalid_configuration():
    with pytest.raises(ValueError):
        RollingGARCHForecaster(on_failure='skip')
    with pytest.raises(ValueError):
        RollingGARCHForecaster(n_jobs=0)

def test_normal_returns_scenario(forecaster, normal_returns):
    """Test 500 standard normal returns with window 30 give 470 positive forecasts"""
    result = forecaster.generate_rolling_forecasts(normal_returns)

    assert isinstance(result, RollingForecast)
    assert len(result) == 470
    assert len(result.converged) == 470
    converged = result.forecasts[result.converged]
    assert len(converged) > 0.9 * 470
    assert np.all(np.isfinite(converged))
    assert np.all(converged > 0)
    # Unit variance data
    assert 0.3 < np.median(converged) < 3.0

@pytest.mark.parametrize('n, window', [(31, 30), (40, 10), (60, 59), (45, 1)])
def test_output_length(n, window):
    """Test output has exactly N - W elements"""
    rng = np.random.default_rng(n)
    returns = rng.normal(0, 0.01, n)

    result = RollingGARCHForecaster(window_size=window).generate_rolling_forecasts(returns)

    assert len(result) == n - window
    assert len(result.messages) == n - window

def test_window_one_less_than_series(short_returns):
    """Test W = N - 1 yields exactly one forecast"""
    forecaster = RollingGARCHForecaster(window_size=len(short_returns) - 1)
    result = forecaster.generate_rolling_forecasts(short_returns)

    assert len(result) == 1

@pytest.mark.parametrize('window', [0, -5, 70, 71, 500])
def test_invalid_window_size(short_returns, window):
    """Test W <= 0 or W >= N fails before any fit"""
    forecaster = RollingGARCHForecaster(window_size=window)

    with pytest.raises(ValueError):
        forecaster.generate_rolling_forecasts(short_returns)

def test_non_integer_window(short_returns):
    with pytest.raises(ValueError):
        RollingGARCHForecaster(window_size=30.0).generate_rolling_forecasts(short_returns)

def test_invalid_window_fits_nothing(monkeypatch, short_returns):
    """Test the precondition check runs before any fitting"""
    calls = []
    monkeypatch.setattr(forecaster_module, '_fit_task', lambda task: calls.append(task))

    with pytest.raises(ValueError):
        RollingGARCHForecaster(window_size=100).generate_rolling_forecasts(short_returns)
    assert calls == []

def test_nan_in_returns(short_returns):
    returns = short_returns.copy()
    returns[10] = np.nan

    with pytest.raises(ValueError):
        RollingGARCHForecaster(window_size=30).generate_rolling_forecasts(returns)

def test_deterministic(forecaster, short_returns):
    """Test repeated runs give identical forecasts"""
    first = forecaster.generate_rolling_forecasts(short_returns)
    second = forecaster.generate_rolling_forecasts(short_returns)

    np.testing.assert_array_equal(first.forecasts, second.forecasts)
    np.testing.assert_array_equal(first.converged, second.converged)

def test_parallel_vs_serial(short_returns):
    """Test parallel and serial execution give the same ordered result"""
    serial = RollingGARCHForecaster(window_size=30, n_jobs=1).generate_rolling_forecasts(short_returns)
    parallel = RollingGARCHForecaster(window_size=30, n_jobs=2).generate_rolling_forecasts(short_returns)

    np.testing.assert_allclose(parallel.forecasts, serial.forecasts, rtol=1e-10, equal_nan=True)
    np.testing.assert_array_equal(parallel.converged, serial.converged)

def test_window_independence(forecaster, short_returns):
    """Test data outside a window never changes that window's forecast"""
    k = 12
    w = forecaster.window_size
    rng = np.random.default_rng(99)

    altered = short_returns.copy()
    altered[:k] = rng.normal(0, 0.2, k)
    outside = altered[k + w:]
    altered[k + w:] = rng.permutation(outside) * 3

    original = forecaster.generate_rolling_forecasts(short_returns)
    changed = forecaster.generate_rolling_forecasts(altered)

    np.testing.assert_array_equal(original.forecasts[k], changed.forecasts[k])
    assert original.converged[k] == changed.converged[k]

def test_element_matches_single_window_fit(forecaster, short_returns):
    """Test element k equals a standalone fit of returns[k:k+W]"""
    result = forecaster.generate_rolling_forecasts(short_returns)

    for k in (0, 17, len(result) - 1):
        fit = forecaster.estimator.fit_window(short_returns[k:k + 30], position=k)
        np.testing.assert_array_equal(result.forecasts[k], fit.forecast)

def test_constant_zero_series(forecaster):
    """Test identical degenerate windows all agree"""
    result = forecaster.generate_rolling_forecasts(np.zeros(100))

    assert len(result) == 70
    assert result.converged.all() or not result.converged.any()
    np.testing.assert_array_equal(result.forecasts, np.full(70, result.forecasts[0]))
    if result.converged.all():
        assert result.forecasts[0] < 1e-3

def test_outlier_spike():
    """Test an outlier spikes the forecast while inside the window only"""
    rng = np.random.default_rng(3)
    returns = rng.normal(0, 0.005, 160)
    returns[100] = 0.5

    result = RollingGARCHForecaster(window_size=30).generate_rolling_forecasts(returns)
    forecasts = result.forecasts

    before = forecasts[:71]  # windows ending before the outlier
    during = forecasts[71:101]  # windows containing index 100
    after = forecasts[101:]

    baseline = np.nanmedian(before)
    assert np.nanmax(during) > 10 * baseline
    assert np.nanmedian(after) < 3 * baseline

def test_failure_marked_as_nan(monkeypatch, short_returns):
    """Test the 'nan' policy keeps going and flags the failed window"""
    def flaky_task(task):
        if task[2] == 3:
            return WindowFit(position=3, converged=False, forecast=np.nan, message="no convergence")
        return _fit_task(task)

    monkeypatch.setattr(forecaster_module, '_fit_task', flaky_task)

    result = RollingGARCHForecaster(window_size=30, on_failure='nan').generate_rolling_forecasts(short_returns)

    assert len(result) == 40
    assert np.isnan(result.forecasts[3])
    assert not result.converged[3]
    assert result.messages[3] == "no convergence"
    assert result.n_failed >= 1

def test_failure_aborts_run(monkeypatch, short_returns):
    """Test the 'raise' policy aborts on the first failed window"""
    def flaky_task(task):
        if task[2] == 3:
            return WindowFit(position=3, converged=False, forecast=np.nan, message="no convergence")
        return _fit_task(task)

    monkeypatch.setattr(forecaster_module, '_fit_task', flaky_task)

    forecaster = RollingGARCHForecaster(window_size=30, on_failure='raise')
    with pytest.raises(WindowFitError) as excinfo:
        forecaster.generate_rolling_forecasts(short_returns)

    assert excinfo.value.fit.position == 3
    assert 'window 3' in str(excinfo.value)

def test_series_index_carried(forecaster, short_returns):
    """Test forecasts are indexed by the date they forecast"""
    dates = pd.bdate_range('2023-01-02', periods=len(short_returns))
    returns = pd.Series(short_returns, index=dates)

    result = forecaster.generate_rolling_forecasts(returns)
    series = result.to_series()

    assert len(series) == 40
    assert series.index[0] == dates[30]
    assert series.index[-1] == dates[-1]

    df = result.to_dataframe()
    assert list(df.columns) == ['position', 'forecast', 'converged', 'target_date']
    assert df['position'].tolist() == list(range(40))

def test_progress_bar(short_returns):
    forecaster = RollingGARCHForecaster(window_size=30, show_progress=True)
    result = forecaster.generate_rolling_forecasts(short_returns)
    assert len(result) == 40

class RecordingEstimator(GARCHEstimator):
    """Records the positions it is asked to fit"""

    def __init__(self):
        super().__init__()
        self.positions = []

    def fit_window(self, returns, position=0):
        self.positions.append(position)
        return super().fit_window(returns, position=position)

class PositionEstimator(GARCHEstimator):
    """Returns the window position as the forecast, without fitting"""

    def fit_window(self, returns, position=0):
        return WindowFit(position=position, converged=True, forecast=0.001 * (position + 1))

class SlowFailingEstimator(GARCHEstimator):
    """Fails window 0; every other window sleeps and leaves a marker file"""

    def __init__(self, marker_dir):
        super().__init__()
        self.marker_dir = marker_dir

    def fit_window(self, returns, position=0):
        if position == 0:
            return WindowFit(position=0, converged=False, forecast=np.nan, message="no convergence")
        time.sleep(0.05)
        (self.marker_dir / f"window_{position}").touch()
        return WindowFit(position=position, converged=True, forecast=0.01)

def test_uses_given_estimator(short_returns):
    """Test every window goes through the supplied estimator"""
    estimator = RecordingEstimator()
    forecaster = RollingGARCHForecaster(window_size=30, estimator=estimator)

    result = forecaster.generate_rolling_forecasts(short_returns)

    assert estimator.positions == list(range(40))
    assert len(result) == 40

def test_parallel_uses_given_estimator(short_returns):
    """Test worker processes call the supplied estimator and keep window order"""
    forecaster = RollingGARCHForecaster(window_size=30, estimator=PositionEstimator(), n_jobs=2)

    result = forecaster.generate_rolling_forecasts(short_returns)

    np.testing.assert_allclose(result.forecasts, 0.001 * np.arange(1, 41))
    assert result.converged.all()

def test_parallel_failure_aborts_early(tmp_path):
    """Test the 'raise' policy stops pending parallel fits after the first failure"""
    rng = np.random.default_rng(11)
    returns = rng.normal(0, 0.01, 230)
    forecaster = RollingGARCHForecaster(
        window_size=30,
        estimator=SlowFailingEstimator(tmp_path),
        on_failure='raise',
        n_jobs=2
    )

    start = time.time()
    with pytest.raises(WindowFitError) as excinfo:
        forecaster.generate_rolling_forecasts(returns)
    elapsed = time.time() - start

    assert excinfo.value.fit.position == 0
    # Running all 199 slow windows on two workers takes about 5 seconds
    finished = len(list(tmp_path.glob("window_*")))
    assert finished < 50
    assert elapsed < 2.5

def test_workers_capped_at_cpu_count(monkeypatch):
    """Test the worker pool never exceeds the available cores"""
    monkeypatch.setattr(forecaster_module.os, 'cpu_count', lambda: 2)

    assert RollingGARCHForecaster(n_jobs=8)._n_workers() == 2
    assert RollingGARCHForecaster(n_jobs=-1)._n_workers() == 2
    assert RollingGARCHForecaster(n_jobs=1)._n_workers() == 1

    monkeypatch.setattr(forecaster_module.os, 'cpu_count', lambda: None)
    assert RollingGARCHForecaster(n_jobs=4)._n_workers() == 1

if __name__ == '__main__':
    pytest.main([__file__])
