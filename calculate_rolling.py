#!/usr/bin/env python
"""
Rolling GARCH(1,1) volatility pipeline for Dutch TTF front-month futures.
Loads prices, computes log returns and re-estimates GARCH on a sliding window.
"""
import sys
from pathlib import Path
import logging
from datetime import datetime
import numpy as np
import pandas as pd
from typing import Dict, Any, Optional
import time
import psutil
import traceback
from scipy import stats

# Add project root to path
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.append(str(project_root))

from data_manager.data_loader import DataLoader
from data_manager.data_validator import DataValidator
from data_manager.database import ForecastDatabase
from garch.data_prep import GarchDataPrep
from garch.estimator import GARCHEstimator
from garch.forecaster import RollingGARCHForecaster

# Run parameters
SERIES_ID = 'TTF'
DATA_FILE = project_root / "data_manager" / "data" / "DUTCH2.1.csv"
OUTPUT_DIR = project_root / "results"
WINDOW_SIZE = 30
DISTRIBUTION = 'normal'
MAX_ITER = 1000
ON_FAILURE = 'nan'
N_JOBS = -1

class PipelineMonitor:
    """Tracks timing and memory of pipeline stages"""
    def __init__(self):
        self.start_time = time.time()
        self.last_checkpoint = self.start_time
        self.checkpoints = {}

    def checkpoint(self, name: str):
        """Record timing for a checkpoint"""
        now = time.time()
        duration = now - self.last_checkpoint
        self.checkpoints[name] = {
            'duration': duration,
            'memory': psutil.Process().memory_info().rss / 1024 / 1024  # MB
        }
        self.last_checkpoint = now

    def report(self):
        """Generate checkpoint report"""
        total_time = time.time() - self.start_time
        report = ["Performance Report:", "-----------------"]

        for name, info in self.checkpoints.items():
            report.append(f"{name}:")
            report.append(f"  Duration: {info['duration']:.2f} seconds")
            report.append(f"  Memory: {info['memory']:.2f} MB")

        report.append("-----------------")
        report.append(f"Total Time: {total_time:.2f} seconds")
        return "\n".join(report)

def setup_logging(output_dir: Path) -> logging.Logger:
    """
    Configure logging with both file and console handlers

    Parameters:
    -----------
    output_dir : Path
        Directory for log file

    Returns:
    --------
    logging.Logger
        Configured root logger
    """
    log_dir = output_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"rolling_garch_{timestamp}.log"

    # Handlers go on the root logger so package loggers are captured too
    root = logging.getLogger()
    root.setLevel(logging.INFO)

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(
        logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter('%(message)s'))

    root.addHandler(file_handler)
    root.addHandler(console_handler)

    return logging.getLogger("rolling_calculator")

def load_ttf_data(data_file: Path, logger: logging.Logger) -> pd.Series:
    """Load TTF prices and convert them to daily log returns"""
    logger.info("Loading TTF data...")

    try:
        prices = DataLoader().load_prices(data_file)

        is_valid, issues = DataValidator().validate_prices(prices)
        if not is_valid:
            raise ValueError(f"Invalid price data: {'; '.join(issues)}")

        peak_date = prices.idxmax()
        logger.info(f"Peak price {prices.max():.2f} on {peak_date:%Y-%m-%d}")

        prep = GarchDataPrep()
        returns = prep.prepare_returns(prices)
        if prep.verify_data_quality(returns, min_observations=WINDOW_SIZE + 1):
            logger.info("Data quality check passed")
        else:
            logger.warning("Data quality check failed, continuing with rolling estimation")
        return returns

    except Exception as e:
        logger.error(f"Error loading data: {str(e)}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        raise

def initialize_components(output_dir: Path, logger: Optional[logging.Logger] = None) -> Dict:
    """Initialize all analysis components"""
    if logger is None:
        logger = logging.getLogger('rolling_calculator')

    logger.info("Creating GARCH estimator...")
    estimator = GARCHEstimator(distribution=DISTRIBUTION, max_iter=MAX_ITER)

    logger.info("Creating rolling forecaster...")
    forecaster = RollingGARCHForecaster(
        window_size=WINDOW_SIZE,
        estimator=estimator,
        on_failure=ON_FAILURE,
        n_jobs=N_JOBS,
        show_progress=True
    )

    logger.info("Opening forecast database...")
    database = ForecastDatabase(output_dir / "forecasts.duckdb")

    return {
        'validator': DataValidator(),
        'forecaster': forecaster,
        'database': database
    }

def summarize_forecasts(forecasts: np.ndarray) -> Dict[str, float]:
    """Summary statistics of the converged forecasts"""
    valid = forecasts[np.isfinite(forecasts)]
    if len(valid) < 2:
        return {'n': int(len(valid))}

    desc = stats.describe(valid)
    return {
        'n': int(desc.nobs),
        'mean': float(desc.mean),
        'std': float(np.sqrt(desc.variance)),
        'min': float(desc.minmax[0]),
        'max': float(desc.minmax[1]),
        'skew': float(desc.skewness),
        'kurtosis': float(desc.kurtosis),
    }

def run_analysis(components: Dict, returns: pd.Series, output_dir: Path,
                 logger: logging.Logger, monitor: Any = None) -> Dict:
    """Run the rolling estimation and store the forecasts"""
    logger.info("Starting analysis pipeline...")

    try:
        validator = components['validator']
        forecaster = components['forecaster']
        database = components['database']

        adf = validator.check_stationarity(returns)
        if monitor:
            monitor.checkpoint('stationarity')

        rolling = forecaster.generate_rolling_forecasts(returns)
        if monitor:
            monitor.checkpoint('rolling_garch')

        run_id = database.store_forecast(rolling, SERIES_ID)

        csv_file = output_dir / f"rolling_garch_w{rolling.window_size}.csv"
        rolling.to_dataframe().to_csv(csv_file, index=False)
        logger.info(f"Wrote forecasts to {csv_file}")

        summary = summarize_forecasts(rolling.forecasts)
        logger.info(
            "Forecast summary (daily std dev):\n"
            + "\n".join(f"  {k}: {v:.6f}" if isinstance(v, float) else f"  {k}: {v}"
                        for k, v in summary.items())
        )

        return {
            'series_id': SERIES_ID,
            'run_id': run_id,
            'adf': adf,
            'forecast': rolling,
            'summary': summary
        }

    except Exception as e:
        logger.error(f"Error in analysis pipeline: {str(e)}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        raise

def main(data_file: Optional[Path] = None, output_dir: Path = OUTPUT_DIR):
    """Main entry point"""
    output_dir.mkdir(parents=True, exist_ok=True)
    logger = setup_logging(output_dir)
    logger.info("Starting rolling GARCH pipeline...")

    components = None
    try:
        monitor = PipelineMonitor()

        returns = load_ttf_data(data_file or DATA_FILE, logger)
        monitor.checkpoint('load_data')

        components = initialize_components(output_dir, logger)
        results = run_analysis(components, returns, output_dir, logger, monitor)

        logger.info(monitor.report())
        logger.info("Pipeline completed successfully")
        return results

    except Exception as e:
        logger.error(f"Pipeline failed: {str(e)}")
        raise

    finally:
        if components is not None:
            components['database'].close()

if __name__ == '__main__':
    main(Path(sys.argv[1]) if len(sys.argv) > 1 else None)
