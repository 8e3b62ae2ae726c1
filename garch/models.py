from dataclasses import dataclass, field
from typing import Dict, List, Optional
import numpy as np
import pandas as pd

@dataclass
class WindowFit:
    """Container for a single-window GARCH(1,1) fit"""
    position: int
    converged: bool
    forecast: float  # One-step-ahead std dev in return units, nan on failure
    params: Dict[str, float] = field(default_factory=dict)
    volatility_path: Optional[np.ndarray] = None  # In-window conditional volatility
    message: str = ""

@dataclass
class RollingForecast:
    """Ordered one-step-ahead forecasts, element k fitted on returns[k:k+window_size]"""
    window_size: int
    distribution: str
    on_failure: str
    forecasts: np.ndarray
    converged: np.ndarray
    index: Optional[pd.Index] = None  # Target date of each forecast
    messages: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.forecasts)

    @property
    def n_failed(self) -> int:
        return int(np.sum(~self.converged))

    def to_series(self, name: str = 'garch_forecast') -> pd.Series:
        return pd.Series(self.forecasts, index=self.index, name=name)

    def to_dataframe(self) -> pd.DataFrame:
        """Convert forecasts to DataFrame, one row per window position"""
        df = pd.DataFrame({
            'position': np.arange(len(self.forecasts)),
            'forecast': self.forecasts,
            'converged': self.converged,
        })
        if self.index is not None:
            df['target_date'] = self.index
        return df
