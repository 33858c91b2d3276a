# bdstore

`bdstore` keeps the staking state of a proof-of-stake chain in an SQLite
database: validators and their descriptions, commissions, voting powers and
statuses, delegations, redelegations and unbonding delegations, double-sign
evidence, signing infos, and the slashing and staking parameters and pool.

Most writes are *height-aware*: a stored row is only replaced when the
incoming data carries the same or a later block height. Feeding the store
out-of-order data therefore does not roll the state back.

It needs nothing beyond the Python standard library (3.10 or later).

## Opening a store

`bdstore.database.Database` brings every store together. It takes a path to
an SQLite file (or `":memory:"`), creates the tables it needs if they are
missing, and works as a context manager that closes the connection on exit:

```python
from bdstore.database import Database
from bdstore.models import Pool

with Database(":memory:") as db:
    db.save_staking_pool(Pool(50, 100, 10))
    rows = db.fetch_all("SELECT bonded_tokens, not_bonded_tokens, height FROM staking_pool")
    # rows[0]["bonded_tokens"] == "50"
```

`fetch_all(sql, *args)` runs any statement with `?` placeholders and returns
the rows as `sqlite3.Row` objects.

## What can be stored

Parameters, pool and signing infos (`bdstore.params.ParamsStore`):

- `save_validators_signing_infos(infos)`
- `save_slashing_params(params)`
- `save_staking_params(params)` and `get_staking_params()`
- `save_staking_pool(pool)`

Slashing and staking parameters are kept as JSON of the mapping in
`SlashingParams.params` / `StakingParams.params`; only one row of each, and
of the pool, is kept.

Validators (`bdstore.validators.ValidatorStore`):

- `save_validator_data(validator)`, `save_validators_data(validators)` —
  also record the self-delegate address as an account
- `get_validator(val_address)`, `get_validator_by_self_delegate_address(address)`
- `get_validators()` — every validator, ordered by consensus address
- `get_validator_consensus_address(address)`,
  `get_validator_operator_address(cons_addr)`
- `save_validator_description(description)` — merged with the stored
  description; fields (and the avatar URL) set to `DO_NOT_MODIFY`
  (`"[do-not-modify]"`) keep their stored value, and empty fields are stored
  as `NULL`
- `save_validator_commission(data)` — a commission or minimum
  self-delegation given as `None` keeps the stored value; if both are `None`
  nothing is written
- `save_validators_voting_powers(entries)`, `save_validators_statuses(statuses)`
- `save_double_sign_evidence(evidence)` — stores both votes, then the
  evidence pointing at their row ids

Delegations (`bdstore.delegations.DelegationStore`); the validators involved
must already be stored:

- `save_delegations`, `get_user_delegations_amount`,
  `delete_delegator_delegations`, `get_delegators`
- `save_redelegations`, `get_user_redelegations_amount`,
  `delete_redelegation`, `delete_completed_redelegations(timestamp)`
- `save_unbonding_delegations`, `get_user_unbonding_delegations_amount`,
  `delete_unbonding_delegation`, `delete_completed_unbonding_delegations(timestamp)`

Saving a delegation that already exists replaces its amount and height.
Saving a redelegation or unbonding delegation that already exists updates
only its height. The `delete_completed_*` methods remove every entry whose
completion time is strictly before the given timestamp and return what they
removed, oldest first. The `get_user_*_amount` methods return a
`bdstore.models.Coins` holding the sum per denomination. `get_delegators()`
returns the distinct delegator addresses, sorted.

Times are stored in UTC; naive `datetime` values are taken to be UTC, and
times read back are timezone-aware UTC.

## Data types

The records passed in and returned live in `bdstore.models`: `Coin`,
`Coins`, `Description`, `Validator`, `ValidatorDescription`,
`ValidatorCommission`, `ValidatorVotingPower`, `ValidatorStatus`,
`DoubleSignVote`, `DoubleSignEvidence`, `ValidatorSigningInfo`,
`Delegation`, `Redelegation`, `UnbondingDelegation`, `SlashingParams`,
`StakingParams` and `Pool`. All are frozen dataclasses.

- `Coins` normalises itself: one entry per denomination, sorted, zero
  amounts dropped; `Coins.add(coin)` returns a new set.
- `Description.ensure_length()` checks the byte length of each field
  (moniker 70, identity 3000, website 140, security contact 140,
  details 280) and `Description.update(other)` merges as described above.
- `format_dec(value)` renders a decimal with eighteen fractional digits
  (`format_dec("0.011") == "0.011000000000000000"`); rates and commissions
  are stored this way.

## Errors

Lookups that find nothing and failed reads or writes raise
`bdstore.base.DatabaseError`, with a message naming what could not be found
or stored. Invalid values — a bad coin denomination, a negative amount, an
over-long description field, a decimal with more than eighteen fractional
digits — raise `ValueError`.

## What it does not do

`bdstore` is a storage library only. It has no command-line program, does not
connect to a chain node or fetch blocks, and does not decide what to store:
the caller parses chain data into the `bdstore.models` records and hands them
to the store. The only backend is SQLite.