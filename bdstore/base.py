"""SQLite storage shared by every store."""

from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Sequence

from .models import Coin

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS account (
    address TEXT NOT NULL PRIMARY KEY
);
CREATE TABLE IF NOT EXISTS validator (
    consensus_address TEXT NOT NULL PRIMARY KEY,
    consensus_pubkey TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS validator_info (
    consensus_address TEXT NOT NULL PRIMARY KEY,
    operator_address TEXT NOT NULL,
    self_delegate_address TEXT,
    max_change_rate TEXT NOT NULL,
    max_rate TEXT NOT NULL,
    height INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS validator_description (
    validator_address TEXT NOT NULL PRIMARY KEY,
    moniker TEXT,
    identity TEXT,
    avatar_url TEXT,
    website TEXT,
    security_contact TEXT,
    details TEXT,
    height INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS validator_commission (
    validator_address TEXT NOT NULL PRIMARY KEY,
    commission TEXT NOT NULL,
    min_self_delegation TEXT NOT NULL,
    height INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS validator_voting_power (
    validator_address TEXT NOT NULL PRIMARY KEY,
    voting_power INTEGER NOT NULL,
    height INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS validator_status (
    validator_address TEXT NOT NULL PRIMARY KEY,
    status INTEGER NOT NULL,
    jailed BOOLEAN NOT NULL,
    height INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS double_sign_vote (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    type INTEGER NOT NULL,
    height INTEGER NOT NULL,
    round INTEGER NOT NULL,
    block_id TEXT NOT NULL,
    validator_address TEXT NOT NULL,
    validator_index INTEGER NOT NULL,
    signature TEXT NOT NULL,
    UNIQUE (block_id, validator_address)
);
CREATE TABLE IF NOT EXISTS double_sign_evidence (
    height INTEGER NOT NULL,
    vote_a_id INTEGER NOT NULL,
    vote_b_id INTEGER NOT NULL,
    UNIQUE (vote_a_id, vote_b_id)
);
CREATE TABLE IF NOT EXISTS validator_signing_info (
    validator_address TEXT NOT NULL PRIMARY KEY,
    start_height INTEGER NOT NULL,
    index_offset INTEGER NOT NULL,
    jailed_until TEXT NOT NULL,
    tombstoned BOOLEAN NOT NULL,
    missed_blocks_counter INTEGER NOT NULL,
    height INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS slashing_params (
    one_row_id BOOLEAN NOT NULL DEFAULT 1 PRIMARY KEY CHECK (one_row_id = 1),
    params TEXT NOT NULL,
    height INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS staking_params (
    one_row_id BOOLEAN NOT NULL DEFAULT 1 PRIMARY KEY CHECK (one_row_id = 1),
    params TEXT NOT NULL,
    height INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS staking_pool (
    one_row_id BOOLEAN NOT NULL DEFAULT 1 PRIMARY KEY CHECK (one_row_id = 1),
    bonded_tokens TEXT NOT NULL,
    not_bonded_tokens TEXT NOT NULL,
    height INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS delegation (
    validator_address TEXT NOT NULL,
    delegator_address TEXT NOT NULL,
    amount TEXT NOT NULL,
    height INTEGER NOT NULL,
    UNIQUE (validator_address, delegator_address)
);
CREATE TABLE IF NOT EXISTS redelegation (
    delegator_address TEXT NOT NULL,
    src_validator_address TEXT NOT NULL,
    dst_validator_address TEXT NOT NULL,
    amount TEXT NOT NULL,
    completion_time TEXT NOT NULL,
    height INTEGER NOT NULL,
    UNIQUE (delegator_address, src_validator_address, dst_validator_address, completion_time)
);
CREATE TABLE IF NOT EXISTS unbonding_delegation (
    validator_address TEXT NOT NULL,
    delegator_address TEXT NOT NULL,
    amount TEXT NOT NULL,
    completion_timestamp TEXT NOT NULL,
    height INTEGER NOT NULL,
    UNIQUE (delegator_address, validator_address, completion_timestamp)
);
"""


class DatabaseError(Exception):
    """Raised when a storage operation fails."""


class BaseStore:
    """Owns the SQLite connection and the schema."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        try:
            self._conn = sqlite3.connect(os.fspath(path))
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise DatabaseError(f"error while opening database: {exc}") from exc

    def close(self) -> None:
        """Close the underlying connection."""
        self._conn.close()

    def __enter__(self) -> BaseStore:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def fetch_all(self, sql: str, *args: Any) -> list[sqlite3.Row]:
        """Run a statement with positional parameters and return every row."""
        return self._query("error while executing query", sql, args)

    @contextmanager
    def _transaction(self, message: str) -> Iterator[sqlite3.Connection]:
        try:
            with self._conn:
                yield self._conn
        except sqlite3.Error as exc:
            raise DatabaseError(f"{message}: {exc}") from exc

    def _query(self, message: str, sql: str, args: Sequence[Any] = ()) -> list[sqlite3.Row]:
        with self._transaction(message) as conn:
            return conn.execute(sql, tuple(args)).fetchall()

    def _execute(self, message: str, sql: str, args: Sequence[Any] = ()) -> None:
        with self._transaction(message) as conn:
            conn.execute(sql, tuple(args))

    def _execute_many(self, message: str, sql: str, rows: Iterable[Sequence[Any]]) -> None:
        with self._transaction(message) as conn:
            conn.executemany(sql, [tuple(row) for row in rows])

    @staticmethod
    def _encode_time(moment: datetime) -> str:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(timezone.utc).strftime(_TIME_FORMAT)

    @staticmethod
    def _decode_time(text: str) -> datetime:
        return datetime.strptime(text, _TIME_FORMAT).replace(tzinfo=timezone.utc)

    @staticmethod
    def _encode_coin(coin: Coin) -> str:
        return json.dumps({"denom": coin.denom, "amount": str(coin.amount)})

    @staticmethod
    def _decode_coin(text: str) -> Coin:
        data = json.loads(text)
        return Coin(data["denom"], int(data["amount"]))