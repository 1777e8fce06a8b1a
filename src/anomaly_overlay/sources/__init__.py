from .base import AnomalyDataSource
from .fixture import FixtureDataSource

__all__ = ["AnomalyDataSource", "FixtureDataSource"]
