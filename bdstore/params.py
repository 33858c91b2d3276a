"""Storage of slashing and staking parameters, signing infos and the staking pool."""

from __future__ import annotations

import json
from typing import Iterable, Sequence

from .base import BaseStore, DatabaseError
from .models import Pool, SlashingParams, StakingParams, ValidatorSigningInfo


def _height_guarded_upsert(table: str, columns: Sequence[str], conflict: str) -> str:
    """Build an upsert that only overwrites rows whose height is not newer."""
    column_list = ", ".join(columns)
    placeholders = ", ".join("?" for _ in columns)
    assignments = ", ".join(f"{name} = excluded.{name}" for name in columns)
    return (
        f"INSERT INTO {table} ({column_list}) VALUES ({placeholders}) "
        f"ON CONFLICT ({conflict}) DO UPDATE SET {assignments} "
        f"WHERE {table}.height <= excluded.height"
    )


_SIGNING_INFO_COLUMNS = (
    "validator_address",
    "start_height",
    "index_offset",
    "jailed_until",
    "tombstoned",
    "missed_blocks_counter",
    "height",
)

_SIGNING_INFO_SQL = _height_guarded_upsert(
    "validator_signing_info", _SIGNING_INFO_COLUMNS, "validator_address"
)
_SLASHING_PARAMS_SQL = _height_guarded_upsert(
    "slashing_params", ("params", "height"), "one_row_id"
)
_STAKING_PARAMS_SQL = _height_guarded_upsert(
    "staking_params", ("params", "height"), "one_row_id"
)
_STAKING_POOL_SQL = _height_guarded_upsert(
    "staking_pool", ("bonded_tokens", "not_bonded_tokens", "height"), "one_row_id"
)
_READ_STAKING_PARAMS_SQL = "SELECT params, height FROM staking_params LIMIT 1"


def _marshal(params, what: str) -> str:
    try:
        return json.dumps(dict(params))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"error while marshaling {what}: {exc}") from exc


class ParamsStore(BaseStore):
    """Stores chain parameters; newer heights replace older data, older ones are ignored."""

    def save_validators_signing_infos(self, infos: Iterable[ValidatorSigningInfo]) -> None:
        """Insert or update the signing info of each validator."""
        rows = [
            (
                info.validator_address,
                info.start_height,
                info.index_offset,
                self._encode_time(info.jailed_until),
                bool(info.tombstoned),
                info.missed_blocks_counter,
                info.height,
            )
            for info in infos
        ]
        if not rows:
            return
        self._execute_many("error while storing validators signing infos", _SIGNING_INFO_SQL, rows)

    def save_slashing_params(self, params: SlashingParams) -> None:
        """Store the slashing parameters for their height."""
        self._execute(
            "error while storing slashing params",
            _SLASHING_PARAMS_SQL,
            (_marshal(params.params, "slashing params"), params.height),
        )

    def save_staking_params(self, params: StakingParams) -> None:
        """Store the staking parameters for their height."""
        self._execute(
            "error while storing staking params",
            _STAKING_PARAMS_SQL,
            (_marshal(params.params, "staking params"), params.height),
        )

    def get_staking_params(self) -> StakingParams:
        """Return the stored staking parameters."""
        rows = self._query("error while reading staking params", _READ_STAKING_PARAMS_SQL)
        if not rows:
            raise DatabaseError("no staking params found")
        row = rows[0]
        return StakingParams(params=json.loads(row["params"]), height=row["height"])

    def save_staking_pool(self, pool: Pool) -> None:
        """Store the staking pool for its height."""
        self._execute(
            "error while storing staking pool",
            _STAKING_POOL_SQL,
            (str(pool.bonded_tokens), str(pool.not_bonded_tokens), pool.height),
        )