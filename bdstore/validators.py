"""Storage of validators, their descriptions, commissions, powers, statuses and evidences."""

from __future__ import annotations

import sqlite3
from typing import Iterable

from .base import BaseStore, DatabaseError
from .models import (
    DO_NOT_MODIFY,
    Description,
    DoubleSignEvidence,
    DoubleSignVote,
    Validator,
    ValidatorCommission,
    ValidatorDescription,
    ValidatorStatus,
    ValidatorVotingPower,
    format_dec,
)

_ACCOUNT_SQL = "INSERT INTO account (address) VALUES (?) ON CONFLICT DO NOTHING"

_VALIDATOR_SQL = """
INSERT INTO validator (consensus_address, consensus_pubkey) VALUES (?, ?)
ON CONFLICT DO NOTHING"""

_VALIDATOR_INFO_SQL = """
INSERT INTO validator_info
    (consensus_address, operator_address, self_delegate_address, max_change_rate, max_rate, height)
VALUES (?, ?, ?, ?, ?, ?)
ON CONFLICT (consensus_address) DO UPDATE
    SET consensus_address = excluded.consensus_address,
        operator_address = excluded.operator_address,
        self_delegate_address = excluded.self_delegate_address,
        max_change_rate = excluded.max_change_rate,
        max_rate = excluded.max_rate,
        height = excluded.height
WHERE validator_info.height <= excluded.height"""

_VALIDATOR_SELECT = """
SELECT validator.consensus_address,
       validator.consensus_pubkey,
       validator_info.operator_address,
       validator_info.max_change_rate,
       validator_info.max_rate,
       validator_info.self_delegate_address,
       validator_info.height
FROM validator
INNER JOIN validator_info ON validator.consensus_address = validator_info.consensus_address"""

_DESCRIPTION_SQL = """
INSERT INTO validator_description (
    validator_address, moniker, identity, avatar_url, website, security_contact, details, height
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (validator_address) DO UPDATE
    SET moniker = excluded.moniker,
        identity = excluded.identity,
        avatar_url = excluded.avatar_url,
        website = excluded.website,
        security_contact = excluded.security_contact,
        details = excluded.details,
        height = excluded.height
WHERE validator_description.height <= excluded.height"""

_COMMISSION_SQL = """
INSERT INTO validator_commission (validator_address, commission, min_self_delegation, height)
VALUES (?, ?, ?, ?)
ON CONFLICT (validator_address) DO UPDATE
    SET commission = excluded.commission,
        min_self_delegation = excluded.min_self_delegation,
        height = excluded.height
WHERE validator_commission.height <= excluded.height"""

_VOTING_POWER_SQL = """
INSERT INTO validator_voting_power (validator_address, voting_power, height)
VALUES (?, ?, ?)
ON CONFLICT (validator_address) DO UPDATE
    SET voting_power = excluded.voting_power,
        height = excluded.height
WHERE validator_voting_power.height <= excluded.height"""

_STATUS_SQL = """
INSERT INTO validator_status (validator_address, status, jailed, height)
VALUES (?, ?, ?, ?)
ON CONFLICT (validator_address) DO UPDATE
    SET status = excluded.status,
        jailed = excluded.jailed,
        height = excluded.height
WHERE validator_status.height <= excluded.height"""

_VOTE_SQL = """
INSERT INTO double_sign_vote
    (type, height, round, block_id, validator_address, validator_index, signature)
VALUES (?, ?, ?, ?, ?, ?, ?) ON CONFLICT DO NOTHING"""

_EVIDENCE_SQL = """
INSERT INTO double_sign_evidence (height, vote_a_id, vote_b_id)
VALUES (?, ?, ?) ON CONFLICT DO NOTHING"""


def _null_string(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _to_string(value: str | None) -> str:
    return value if value is not None else ""


def _row_to_validator(row: sqlite3.Row, with_height: bool) -> Validator:
    return Validator(
        consensus_address=row["consensus_address"],
        operator_address=row["operator_address"],
        consensus_pubkey=row["consensus_pubkey"],
        self_delegate_address=row["self_delegate_address"],
        max_rate=row["max_rate"],
        max_change_rate=row["max_change_rate"],
        height=row["height"] if with_height else 0,
    )


class ValidatorStore(BaseStore):
    """Stores validator data; newer heights replace older data, older ones are ignored."""

    def save_validator_data(self, validator: Validator) -> None:
        """Store a single validator."""
        self.save_validators_data([validator])

    def save_validators_data(self, validators: Iterable[Validator]) -> None:
        """Store the given validators together with their self delegation accounts."""
        validators = list(validators)
        if not validators:
            return

        self._execute_many(
            "error while storing accounts",
            _ACCOUNT_SQL,
            [(v.self_delegate_address,) for v in validators],
        )
        self._execute_many(
            "error while storing validators",
            _VALIDATOR_SQL,
            [(v.consensus_address, v.consensus_pubkey) for v in validators],
        )
        self._execute_many(
            "error while storing validator infos",
            _VALIDATOR_INFO_SQL,
            [
                (
                    v.consensus_address,
                    v.operator_address,
                    v.self_delegate_address,
                    format_dec(v.max_change_rate),
                    format_dec(v.max_rate),
                    v.height,
                )
                for v in validators
            ],
        )

    def get_validator_consensus_address(self, address: str) -> str:
        """Return the consensus address of the validator with the given operator address."""
        rows = self._query(
            "error while reading validator info",
            "SELECT consensus_address FROM validator_info WHERE operator_address = ?",
            (address,),
        )
        if not rows:
            raise DatabaseError(
                f"cannot find the consensus address of validator having operator address {address}"
            )
        return rows[0]["consensus_address"]

    def get_validator_operator_address(self, cons_addr: str) -> str:
        """Return the operator address of the validator with the given consensus address."""
        rows = self._query(
            "error while reading validator info",
            "SELECT operator_address FROM validator_info WHERE consensus_address = ?",
            (cons_addr,),
        )
        if not rows:
            raise DatabaseError(
                f"cannot find the operator address of validator having consensus address {cons_addr}"
            )
        return rows[0]["operator_address"]

    def get_validator(self, val_address: str) -> Validator:
        """Return the validator having the given operator address."""
        rows = self._query(
            "error while reading validator",
            f"{_VALIDATOR_SELECT}\nWHERE validator_info.operator_address = ?",
            (val_address,),
        )
        if not rows:
            raise DatabaseError(f"no validator with validator address {val_address} could be found")
        return _row_to_validator(rows[0], with_height=False)

    def get_validators(self) -> list[Validator]:
        """Return every stored validator, ordered by consensus address."""
        rows = self._query(
            "error while reading validators",
            f"{_VALIDATOR_SELECT}\nORDER BY validator.consensus_address",
        )
        seen: set[str] = set()
        validators = []
        for row in rows:
            if row["consensus_address"] in seen:
                continue
            seen.add(row["consensus_address"])
            validators.append(_row_to_validator(row, with_height=True))
        return validators

    def get_validator_by_self_delegate_address(self, address: str) -> Validator:
        """Return the validator whose self delegate address is the given one."""
        rows = self._query(
            "error while reading validator",
            f"{_VALIDATOR_SELECT}\nWHERE validator_info.self_delegate_address = ?",
            (address,),
        )
        if not rows:
            raise DatabaseError(f"no validator with self delegate address {address} could be found")
        return _row_to_validator(rows[0], with_height=False)

    def save_validator_description(self, description: ValidatorDescription) -> None:
        """Store a validator description, merging it with the existing one if present."""
        cons_addr = self.get_validator_consensus_address(description.operator_address)
        des = description.description.ensure_length()

        avatar_url = description.avatar_url
        existing = self._get_validator_description(cons_addr)
        if existing is not None:
            des = existing.description.update(des)
            if description.avatar_url == DO_NOT_MODIFY:
                avatar_url = existing.avatar_url

        self._execute(
            "error while storing validator description",
            _DESCRIPTION_SQL,
            (
                _null_string(cons_addr),
                _null_string(des.moniker),
                _null_string(des.identity),
                _null_string(avatar_url),
                _null_string(des.website),
                _null_string(des.security_contact),
                _null_string(des.details),
                description.height,
            ),
        )

    def _get_validator_description(self, cons_addr: str) -> ValidatorDescription | None:
        try:
            rows = self._query(
                "error while reading validator description",
                "SELECT * FROM validator_description WHERE validator_address = ?",
                (cons_addr,),
            )
        except DatabaseError:
            return None
        if not rows:
            return None
        row = rows[0]
        return ValidatorDescription(
            operator_address=row["validator_address"],
            description=Description(
                moniker=_to_string(row["moniker"]),
                identity=_to_string(row["identity"]),
                website=_to_string(row["website"]),
                security_contact=_to_string(row["security_contact"]),
                details=_to_string(row["details"]),
            ),
            avatar_url=_to_string(row["avatar_url"]),
            height=row["height"],
        )

    def save_validator_commission(self, data: ValidatorCommission) -> None:
        """Store a validator commission, keeping stored values for fields not given."""
        if data.commission is None and data.min_self_delegation is None:
            return

        cons_addr = self.get_validator_consensus_address(data.operator_address)

        commission = ""
        min_self_delegation = ""
        try:
            rows = self._query(
                "error while reading validator commission",
                "SELECT * FROM validator_commission WHERE validator_address = ?",
                (cons_addr,),
            )
        except DatabaseError:
            rows = []
        if rows:
            commission = _to_string(rows[0]["commission"])
            min_self_delegation = _to_string(rows[0]["min_self_delegation"])

        if data.commission is not None:
            commission = format_dec(data.commission)
        if data.min_self_delegation is not None:
            min_self_delegation = str(data.min_self_delegation)

        self._execute(
            "error while storing validator commission",
            _COMMISSION_SQL,
            (cons_addr, commission, min_self_delegation, data.height),
        )

    def save_validators_voting_powers(self, entries: Iterable[ValidatorVotingPower]) -> None:
        """Store the voting power of each validator."""
        rows = [(e.consensus_address, e.voting_power, e.height) for e in entries]
        if not rows:
            return
        self._execute_many("error while storing validators voting power", _VOTING_POWER_SQL, rows)

    def save_validators_statuses(self, statuses: Iterable[ValidatorStatus]) -> None:
        """Store the status and jailing state of each validator."""
        statuses = list(statuses)
        if not statuses:
            return
        self._execute_many(
            "error while storing validators",
            _VALIDATOR_SQL,
            [(s.consensus_address, s.consensus_pubkey) for s in statuses],
        )
        self._execute_many(
            "error while storing validators statuses",
            _STATUS_SQL,
            [(s.consensus_address, s.status, bool(s.jailed), s.height) for s in statuses],
        )

    def _save_double_sign_vote(self, vote: DoubleSignVote) -> int:
        message = "error while storing double sign vote"
        with self._transaction(message) as conn:
            cursor = conn.execute(
                _VOTE_SQL,
                (
                    vote.vote_type,
                    vote.height,
                    vote.round,
                    vote.block_id,
                    vote.validator_address,
                    vote.validator_index,
                    vote.signature,
                ),
            )
            if cursor.rowcount == 0:
                raise DatabaseError(f"{message}: no rows in result set")
            return cursor.lastrowid

    def save_double_sign_evidence(self, evidence: DoubleSignEvidence) -> None:
        """Store both votes of a double sign evidence and the evidence itself."""
        vote_a = self._save_double_sign_vote(evidence.vote_a)
        vote_b = self._save_double_sign_vote(evidence.vote_b)
        self._execute(
            "error while storing double sign evidence",
            _EVIDENCE_SQL,
            (evidence.height, vote_a, vote_b),
        )