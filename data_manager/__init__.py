"""
Data management package for futures price analysis.
Handles price loading, validation, and forecast storage.
"""

from .data_loader import DataLoader
from .data_validator import DataValidator

__all__ = ['DataLoader', 'DataValidator']
