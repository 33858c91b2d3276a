"""Value types describing staking, slashing and validator state."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Iterable, Iterator, Mapping

DO_NOT_MODIFY = "[do-not-modify]"

_DEC_PRECISION = 18
_DENOM_RE = re.compile(r"[a-zA-Z][a-zA-Z0-9/:._-]{2,127}")
_DESCRIPTION_LIMITS = {
    "moniker": 70,
    "identity": 3000,
    "website": 140,
    "security_contact": 140,
    "details": 280,
}


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        dec = value
    else:
        try:
            dec = Decimal(str(value) if isinstance(value, float) else value)
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise ValueError(f"invalid decimal: {value!r}") from exc
    if not dec.is_finite():
        raise ValueError(f"invalid decimal: {value!r}")
    return dec


def format_dec(value: Any) -> str:
    """Render a decimal with exactly 18 fractional digits."""
    dec = _to_decimal(value)
    sign, digits, exponent = dec.as_tuple()
    if exponent < -_DEC_PRECISION:
        raise ValueError(
            f"too much precision in {value!r}, maximum {_DEC_PRECISION} decimal places"
        )
    with localcontext() as ctx:
        ctx.prec = len(digits) + max(exponent, 0) + _DEC_PRECISION + 2
        return f"{dec.quantize(Decimal(1).scaleb(-_DEC_PRECISION)):f}"


@dataclass(frozen=True)
class Coin:
    """An amount of a single denomination."""

    denom: str
    amount: int

    def __post_init__(self) -> None:
        if not isinstance(self.denom, str) or not _DENOM_RE.fullmatch(self.denom):
            raise ValueError(f"invalid denom: {self.denom!r}")
        amount = int(self.amount)
        if amount < 0:
            raise ValueError(f"negative coin amount: {amount}")
        object.__setattr__(self, "amount", amount)

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


@dataclass(frozen=True)
class Coins:
    """A normalised set of coins: one entry per denom, sorted, no zero amounts."""

    coins: tuple[Coin, ...] = ()

    def __post_init__(self) -> None:
        totals: dict[str, int] = {}
        for coin in self.coins:
            totals[coin.denom] = totals.get(coin.denom, 0) + coin.amount
        normalised = tuple(
            Coin(denom, amount) for denom, amount in sorted(totals.items()) if amount
        )
        object.__setattr__(self, "coins", normalised)

    def add(self, coin: Coin) -> Coins:
        """Return a new set with the given coin added."""
        return Coins(self.coins + (coin,))

    def __iter__(self) -> Iterator[Coin]:
        return iter(self.coins)

    def __len__(self) -> int:
        return len(self.coins)

    def __str__(self) -> str:
        return ",".join(str(coin) for coin in self.coins)


@dataclass(frozen=True)
class Description:
    """Public description of a validator."""

    moniker: str = ""
    identity: str = ""
    website: str = ""
    security_contact: str = ""
    details: str = ""

    def ensure_length(self) -> Description:
        """Return self, raising ValueError if any field is too long."""
        for name, value in asdict(self).items():
            length = len(value.encode("utf-8"))
            limit = _DESCRIPTION_LIMITS[name]
            if length > limit:
                label = name.replace("_", " ")
                raise ValueError(f"invalid {label} length; got: {length}, max: {limit}")
        return self

    def update(self, other: Description) -> Description:
        """Merge other into this description, keeping fields marked as not to modify."""
        current = asdict(self)
        merged = {
            name: current[name] if value == DO_NOT_MODIFY else value
            for name, value in asdict(other).items()
        }
        return Description(**merged).ensure_length()


@dataclass(frozen=True)
class Validator:
    """Static data of a validator."""

    consensus_address: str
    operator_address: str
    consensus_pubkey: str
    self_delegate_address: str
    max_rate: Decimal
    max_change_rate: Decimal
    height: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "max_rate", _to_decimal(self.max_rate))
        object.__setattr__(self, "max_change_rate", _to_decimal(self.max_change_rate))


@dataclass(frozen=True)
class ValidatorDescription:
    operator_address: str
    description: Description
    avatar_url: str
    height: int


@dataclass(frozen=True)
class ValidatorCommission:
    operator_address: str
    commission: Decimal | None
    min_self_delegation: int | None
    height: int

    def __post_init__(self) -> None:
        if self.commission is not None:
            object.__setattr__(self, "commission", _to_decimal(self.commission))
        if self.min_self_delegation is not None:
            object.__setattr__(self, "min_self_delegation", int(self.min_self_delegation))


@dataclass(frozen=True)
class ValidatorVotingPower:
    consensus_address: str
    voting_power: int
    height: int


@dataclass(frozen=True)
class ValidatorStatus:
    consensus_address: str
    consensus_pubkey: str
    status: int
    jailed: bool
    height: int


@dataclass(frozen=True)
class DoubleSignVote:
    vote_type: int
    height: int
    round: int
    block_id: str
    validator_address: str
    validator_index: int
    signature: str


@dataclass(frozen=True)
class DoubleSignEvidence:
    height: int
    vote_a: DoubleSignVote
    vote_b: DoubleSignVote


@dataclass(frozen=True)
class ValidatorSigningInfo:
    validator_address: str
    start_height: int
    index_offset: int
    jailed_until: datetime
    tombstoned: bool
    missed_blocks_counter: int
    height: int


@dataclass(frozen=True)
class Delegation:
    delegator_address: str
    validator_operator_address: str
    amount: Coin
    height: int


@dataclass(frozen=True)
class Redelegation:
    delegator_address: str
    src_validator: str
    dst_validator: str
    amount: Coin
    completion_time: datetime
    height: int


@dataclass(frozen=True)
class UnbondingDelegation:
    delegator_address: str
    validator_operator_address: str
    amount: Coin
    completion_timestamp: datetime
    height: int


@dataclass(frozen=True)
class SlashingParams:
    params: Mapping[str, Any] = field(default_factory=dict)
    height: int = 0


@dataclass(frozen=True)
class StakingParams:
    params: Mapping[str, Any] = field(default_factory=dict)
    height: int = 0


@dataclass(frozen=True)
class Pool:
    bonded_tokens: int
    not_bonded_tokens: int
    height: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "bonded_tokens", int(self.bonded_tokens))
        object.__setattr__(self, "not_bonded_tokens", int(self.not_bonded_tokens))


def _coins(items: Iterable[Coin]) -> Coins:
    return Coins(tuple(items))