import logging
from pathlib import Path
from typing import Optional, Dict, Union
import duckdb
import numpy as np
import pandas as pd
from garch.models import RollingForecast

logger = logging.getLogger(__name__)

class ForecastDatabase:
    def __init__(self, db_path: Union[str, Path]):
        """Initialize database connection"""
        self.logger = logging.getLogger(__name__)
        self.db_path = Path(db_path)

        # Create database directory if it doesn't exist
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.conn = duckdb.connect(str(self.db_path))
        self._initialize_tables()

        self.logger.info(f"Initialized database at {self.db_path}")

    def _initialize_tables(self):
        """Initialize database tables"""
        try:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS rolling_runs (
                    run_id INTEGER PRIMARY KEY,
                    series_id VARCHAR NOT NULL,
                    window_size INTEGER NOT NULL,
                    distribution VARCHAR NOT NULL,
                    on_failure VARCHAR NOT NULL,
                    n_forecasts INTEGER NOT NULL,
                    n_failed INTEGER NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS rolling_forecasts (
                    run_id INTEGER NOT NULL,
                    position INTEGER NOT NULL,
                    target_date TIMESTAMP,
                    forecast DOUBLE,
                    converged BOOLEAN NOT NULL,
                    PRIMARY KEY (run_id, position)
                );
            """)
        except Exception as e:
            self.logger.error(f"Error initializing database tables: {str(e)}")
            raise

    def get_next_run_id(self) -> int:
        """Get next available run ID"""
        result = self.conn.execute("""
            SELECT COALESCE(MAX(run_id), 0) + 1
            FROM rolling_runs
        """).fetchone()
        return result[0]

    def store_forecast(self, forecast: RollingForecast, series_id: str) -> int:
        """Store a rolling forecast run

        Args:
            forecast: Completed rolling forecast
            series_id: Identifier for the price series (e.g., 'TTF')

        Returns:
            run_id of the stored run
        """
        try:
            self.conn.execute("BEGIN TRANSACTION")
            run_id = self.get_next_run_id()

            self.conn.execute("""
                INSERT INTO rolling_runs (
                    run_id, series_id, window_size, distribution,
                    on_failure, n_forecasts, n_failed
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                run_id,
                series_id,
                int(forecast.window_size),
                forecast.distribution,
                forecast.on_failure,
                len(forecast),
                forecast.n_failed
            ))

            if isinstance(forecast.index, pd.DatetimeIndex):
                target_dates = [pd.Timestamp(d).to_pydatetime() for d in forecast.index]
            else:
                target_dates = [None] * len(forecast)

            rows = [
                (
                    run_id,
                    position,
                    target_dates[position],
                    None if np.isnan(value) else float(value),
                    bool(converged)
                )
                for position, (value, converged)
                in enumerate(zip(forecast.forecasts, forecast.converged))
            ]
            if rows:
                self.conn.executemany("""
                    INSERT INTO rolling_forecasts (
                        run_id, position, target_date, forecast, converged
                    ) VALUES (?, ?, ?, ?, ?)
                """, rows)

            self.conn.execute("COMMIT")
            self.logger.info(f"Stored run {run_id} for {series_id}: {len(rows)} forecasts")
            return run_id

        except Exception as e:
            self.logger.error(f"Error storing rolling forecast: {str(e)}")
            self.conn.execute("ROLLBACK")
            raise

    def get_forecast_series(self, run_id: int) -> pd.DataFrame:
        """Get forecasts of one run ordered by window position"""
        results = self.conn.execute("""
            SELECT position, target_date, forecast, converged
            FROM rolling_forecasts
            WHERE run_id = ?
            ORDER BY position
        """, [run_id]).fetchall()

        df = pd.DataFrame(results, columns=['position', 'target_date', 'forecast', 'converged'])
        df['forecast'] = df['forecast'].astype(float)
        return df

    def get_latest_run(self, series_id: str) -> Optional[Dict]:
        """Get metadata of the most recent run for a series"""
        row = self.conn.execute("""
            SELECT run_id, series_id, window_size, distribution,
                   on_failure, n_forecasts, n_failed, created_at
            FROM rolling_runs
            WHERE series_id = ?
            ORDER BY run_id DESC
            LIMIT 1
        """, [series_id]).fetchone()

        if row is None:
            return None

        columns = ['run_id', 'series_id', 'window_size', 'distribution',
                   'on_failure', 'n_forecasts', 'n_failed', 'created_at']
        return dict(zip(columns, row))

    def close(self):
        """Close database connection"""
        if self.conn is not None:
            self.conn.close()
            self.conn = None
