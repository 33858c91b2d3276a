"""Storage of delegations, redelegations and unbonding delegations."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Iterable

from .base import DatabaseError
from .models import Coins, Delegation, Redelegation, UnbondingDelegation
from .validators import ValidatorStore

_ACCOUNT_SQL = "INSERT INTO account (address) VALUES (?) ON CONFLICT DO NOTHING"

_DELEGATION_SQL = """
INSERT INTO delegation (validator_address, delegator_address, amount, height)
VALUES (?, ?, ?, ?)
ON CONFLICT (validator_address, delegator_address)
DO UPDATE SET amount = excluded.amount, height = excluded.height
WHERE delegation.height <= excluded.height"""

_REDELEGATION_SQL = """
INSERT INTO redelegation
    (delegator_address, src_validator_address, dst_validator_address, amount, completion_time, height)
VALUES (?, ?, ?, ?, ?, ?)
ON CONFLICT (delegator_address, src_validator_address, dst_validator_address, completion_time)
DO UPDATE SET height = excluded.height
WHERE redelegation.height <= excluded.height"""

_UNBONDING_SQL = """
INSERT INTO unbonding_delegation
    (validator_address, delegator_address, amount, completion_timestamp, height)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT (delegator_address, validator_address, completion_timestamp)
DO UPDATE SET height = excluded.height
WHERE unbonding_delegation.height <= excluded.height"""


class DelegationStore(ValidatorStore):
    """Stores delegation data; validators must already be stored."""

    def _consensus_address(self, operator_address: str) -> str:
        try:
            return self.get_validator_consensus_address(operator_address)
        except DatabaseError as exc:
            raise DatabaseError(f"error while getting validator consensus address: {exc}") from exc

    def _validator_cons_addr(self, operator_address: str) -> str:
        try:
            return self.get_validator(operator_address).consensus_address
        except DatabaseError as exc:
            raise DatabaseError(f"error while getting validator: {exc}") from exc

    def _sum_amounts(self, table: str, address: str) -> Coins:
        rows = self._query(
            f"error while reading {table} rows",
            f"SELECT amount FROM {table} WHERE delegator_address = ?",
            (address,),
        )
        return Coins(tuple(self._decode_coin(row["amount"]) for row in rows))

    def _pop_completed(self, table: str, column: str, timestamp: datetime) -> list[sqlite3.Row]:
        moment = self._encode_time(timestamp)
        with self._transaction(f"error while deleting completed {table} rows") as conn:
            rows = conn.execute(
                f"SELECT * FROM {table} WHERE {column} < ? ORDER BY {column}", (moment,)
            ).fetchall()
            conn.execute(f"DELETE FROM {table} WHERE {column} < ?", (moment,))
        return rows

    # ---------------------------------------------------------------- delegations

    def save_delegations(self, delegations: Iterable[Delegation]) -> None:
        """Store the given delegations as the most up-to-date ones."""
        delegations = list(delegations)
        if not delegations:
            return
        try:
            rows = [
                (
                    self._consensus_address(d.validator_operator_address),
                    d.delegator_address,
                    self._encode_coin(d.amount),
                    d.height,
                )
                for d in delegations
            ]
            self._execute_many(
                "error while storing accounts",
                _ACCOUNT_SQL,
                [(d.delegator_address,) for d in delegations],
            )
            self._execute_many("error while storing delegations", _DELEGATION_SQL, rows)
        except DatabaseError as exc:
            raise DatabaseError(f"error while storing up-to-date delegations: {exc}") from exc

    def get_user_delegations_amount(self, address: str) -> Coins:
        """Return the total amount currently delegated by the given user."""
        return self._sum_amounts("delegation", address)

    def delete_delegator_delegations(self, delegator: str) -> None:
        """Remove every delegation of the given delegator."""
        self._execute(
            "error while deleting delegations for delegator",
            "DELETE FROM delegation WHERE delegator_address = ?",
            (delegator,),
        )

    def get_delegators(self) -> list[str]:
        """Return the distinct delegator addresses currently stored."""
        rows = self._query(
            "error while reading delegators",
            "SELECT DISTINCT delegator_address FROM delegation ORDER BY delegator_address",
        )
        return [row["delegator_address"] for row in rows]

    # -------------------------------------------------------------- redelegations

    def save_redelegations(self, redelegations: Iterable[Redelegation]) -> None:
        """Store the given redelegations as the most up-to-date ones."""
        redelegations = list(redelegations)
        if not redelegations:
            return
        try:
            rows = [
                (
                    r.delegator_address,
                    self._validator_cons_addr(r.src_validator),
                    self._validator_cons_addr(r.dst_validator),
                    self._encode_coin(r.amount),
                    self._encode_time(r.completion_time),
                    r.height,
                )
                for r in redelegations
            ]
            self._execute_many(
                "error while storing accounts",
                _ACCOUNT_SQL,
                [(r.delegator_address,) for r in redelegations],
            )
            self._execute_many("error while storing redelegations", _REDELEGATION_SQL, rows)
        except DatabaseError as exc:
            raise DatabaseError(f"error while storing up-to-date redelegations: {exc}") from exc

    def get_user_redelegations_amount(self, address: str) -> Coins:
        """Return the total amount currently redelegated by the given user."""
        return self._sum_amounts("redelegation", address)

    def delete_redelegation(self, redelegation: Redelegation) -> None:
        """Remove the given redelegation."""
        src = self._validator_cons_addr(redelegation.src_validator)
        dst = self._validator_cons_addr(redelegation.dst_validator)
        self._execute(
            "error while deleting redelegations",
            """
DELETE FROM redelegation
WHERE delegator_address = ?
  AND src_validator_address = ?
  AND dst_validator_address = ?
  AND completion_time = ?""",
            (
                redelegation.delegator_address,
                src,
                dst,
                self._encode_time(redelegation.completion_time),
            ),
        )

    def delete_completed_redelegations(self, timestamp: datetime) -> list[Redelegation]:
        """Delete the redelegations completed before the timestamp and return them."""
        rows = self._pop_completed("redelegation", "completion_time", timestamp)
        return [
            Redelegation(
                delegator_address=row["delegator_address"],
                src_validator=self.get_validator_operator_address(row["src_validator_address"]),
                dst_validator=self.get_validator_operator_address(row["dst_validator_address"]),
                amount=self._decode_coin(row["amount"]),
                completion_time=self._decode_time(row["completion_time"]),
                height=row["height"],
            )
            for row in rows
        ]

    # ------------------------------------------------------ unbonding delegations

    def save_unbonding_delegations(self, delegations: Iterable[UnbondingDelegation]) -> None:
        """Store the given unbonding delegations as the most up-to-date ones."""
        delegations = list(delegations)
        if not delegations:
            return
        try:
            rows = [
                (
                    self._validator_cons_addr(d.validator_operator_address),
                    d.delegator_address,
                    self._encode_coin(d.amount),
                    self._encode_time(d.completion_timestamp),
                    d.height,
                )
                for d in delegations
            ]
            self._execute_many(
                "error while storing accounts",
                _ACCOUNT_SQL,
                [(d.delegator_address,) for d in delegations],
            )
            self._execute_many("error while storing unbonding delegations", _UNBONDING_SQL, rows)
        except DatabaseError as exc:
            raise DatabaseError(
                f"error while storing up-to-date undonding delegations: {exc}"
            ) from exc

    def get_user_unbonding_delegations_amount(self, address: str) -> Coins:
        """Return the total amount currently unbonding for the given user."""
        return self._sum_amounts("unbonding_delegation", address)

    def delete_unbonding_delegation(self, delegation: UnbondingDelegation) -> None:
        """Remove the given unbonding delegation."""
        cons_addr = self._validator_cons_addr(delegation.validator_operator_address)
        self._execute(
            "error while deleting unbonding delegation",
            """
DELETE FROM unbonding_delegation
WHERE delegator_address = ?
  AND validator_address = ?
  AND completion_timestamp = ?""",
            (
                delegation.delegator_address,
                cons_addr,
                self._encode_time(delegation.completion_timestamp),
            ),
        )

    def delete_completed_unbonding_delegations(
        self, timestamp: datetime
    ) -> list[UnbondingDelegation]:
        """Delete the unbonding delegations completed before the timestamp and return them."""
        rows = self._pop_completed("unbonding_delegation", "completion_timestamp", timestamp)
        return [
            UnbondingDelegation(
                delegator_address=row["delegator_address"],
                validator_operator_address=self.get_validator_operator_address(
                    row["validator_address"]
                ),
                amount=self._decode_coin(row["amount"]),
                completion_timestamp=self._decode_time(row["completion_timestamp"]),
                height=row["height"],
            )
            for row in rows
        ]