"""Height-aware SQLite storage of staking, slashing and validator data."""

__version__ = "0.1.0"