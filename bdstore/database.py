"""The complete store, combining every kind of stored data."""

from __future__ import annotations

from .delegations import DelegationStore
from .params import ParamsStore


class Database(ParamsStore, DelegationStore):
    """A single SQLite database holding parameters, validators and delegations."""