"""
Loader for daily futures price exports (Bloomberg last price tables).
"""

import logging
from pathlib import Path
from typing import Union
import pandas as pd

logger = logging.getLogger(__name__)

class DataLoader:
    def __init__(self,
                 date_column: str = 'Dates',
                 price_column: str = 'LAST_PRICE',
                 date_format: str = '%d.%m.%Y',
                 sep: str = ';',
                 decimal: str = ','):
        """
        Initialize loader for a two-column date/price table.

        The defaults match a European-locale CSV export: semicolon separated,
        decimal comma and day-first dates.
        """
        self.date_column = date_column
        self.price_column = price_column
        self.date_format = date_format
        self.sep = sep
        self.decimal = decimal

    def load_prices(self, file_path: Union[str, Path]) -> pd.Series:
        """Load, clean and chronologically sort prices from file."""
        file_path = Path(file_path)
        logger.info(f"Reading prices from: {file_path}")

        df = pd.read_csv(file_path, sep=self.sep, dtype=str)
        df.columns = [c.strip() for c in df.columns]

        missing = [c for c in (self.date_column, self.price_column) if c not in df.columns]
        if missing:
            raise ValueError(f"Missing required columns {missing} in {file_path}")

        return self.clean_prices(df)

    def clean_prices(self, df: pd.DataFrame) -> pd.Series:
        """Parse dates and prices, drop unparsable rows and sort by date."""
        dates = pd.to_datetime(df[self.date_column].str.strip(),
                               format=self.date_format, errors='coerce')
        prices = pd.to_numeric(
            df[self.price_column].astype(str).str.strip().str.replace(self.decimal, '.', regex=False),
            errors='coerce'
        )

        valid = dates.notna() & prices.notna()
        if not valid.all():
            logger.warning(f"Dropping {int((~valid).sum())} rows with unparsable date or price")

        series = pd.Series(prices[valid].values, index=pd.DatetimeIndex(dates[valid]),
                           name=self.price_column)
        series.index.name = 'date'
        series = series.sort_index()

        if series.index.has_duplicates:
            n_dup = int(series.index.duplicated().sum())
            logger.warning(f"Dropping {n_dup} duplicate dates, keeping first occurrence")
            series = series[~series.index.duplicated(keep='first')]

        if series.empty:
            raise ValueError("No valid price rows found")

        logger.info(
            f"Loaded {len(series)} prices from "
            f"{series.index[0]:%Y-%m-%d} to {series.index[-1]:%Y-%m-%d}"
        )
        return series
