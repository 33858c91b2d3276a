import json
from datetime import datetime, timezone

import pytest

from bdstore.base import DatabaseError
from bdstore.models import Pool, SlashingParams, StakingParams, ValidatorSigningInfo
from bdstore.params import ParamsStore

CONS_1 = "cosmosvalcons1qqqqrezrl53hujmpdch6d805ac75n220ku09rl"
CONS_2 = "cosmosvalcons1rtst6se0nfgjy362v33jt5d05crgdyhfvvvvay"
JAILED_UNTIL = datetime(2020, 10, 10, 15, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    with ParamsStore(":memory:") as opened:
        yield opened


def _signing_rows(store):
    rows = store.fetch_all("SELECT * FROM validator_signing_info ORDER BY rowid")
    return [
        (
            row["validator_address"],
            row["start_height"],
            row["index_offset"],
            store._decode_time(row["jailed_until"]),
            bool(row["tombstoned"]),
            row["missed_blocks_counter"],
            row["height"],
        )
        for row in rows
    ]


def test_validator_signing_info(store):
    store.save_validators_signing_infos(
        [
            ValidatorSigningInfo(CONS_1, 10, 10, JAILED_UNTIL, True, 10, 10),
            ValidatorSigningInfo(CONS_2, 10, 10, JAILED_UNTIL, True, 10, 10),
        ]
    )
    assert _signing_rows(store) == [
        (CONS_1, 10, 10, JAILED_UNTIL, True, 10, 10),
        (CONS_2, 10, 10, JAILED_UNTIL, True, 10, 10),
    ]

    store.save_validators_signing_infos(
        [
            ValidatorSigningInfo(CONS_1, 100, 10000, JAILED_UNTIL, True, 70, 9),
            ValidatorSigningInfo(CONS_2, 10, 10, JAILED_UNTIL, False, 11, 11),
        ]
    )
    assert _signing_rows(store) == [
        (CONS_1, 10, 10, JAILED_UNTIL, True, 10, 10),
        (CONS_2, 10, 10, JAILED_UNTIL, False, 11, 11),
    ]


def test_empty_signing_infos_store_nothing(store):
    store.save_validators_signing_infos([])
    assert store.fetch_all("SELECT * FROM validator_signing_info") == []


def _slashing(window, dec):
    return {
        "signed_blocks_window": window,
        "min_signed_per_window": f"{dec}0000000000000000",
        "downtime_jail_duration": 10000,
        "slash_fraction_double_sign": f"{dec}0000000000000000",
        "slash_fraction_downtime": f"0.00{dec[2:]}00000000000000",
    }


def _stored_slashing(store):
    rows = store.fetch_all("SELECT * FROM slashing_params")
    assert len(rows) == 1
    return json.loads(rows[0]["params"])


def test_save_slashing_params(store):
    original = _slashing("10", "1.00")
    store.save_slashing_params(SlashingParams(original, 10))
    assert _stored_slashing(store) == original

    store.save_slashing_params(SlashingParams(_slashing("5", "0.50"), 9))
    assert _stored_slashing(store) == original

    same_height = _slashing("5", "0.50")
    store.save_slashing_params(SlashingParams(same_height, 10))
    assert _stored_slashing(store) == same_height

    higher = _slashing("6", "0.60")
    store.save_slashing_params(SlashingParams(higher, 11))
    assert _stored_slashing(store) == higher


STAKING = {
    "unbonding_time": 259200000000000,
    "max_validators": 200,
    "max_entries": 7,
    "historical_entries": 10000,
    "bond_denom": "uatom",
}


def test_save_staking_params(store):
    store.save_staking_params(StakingParams(STAKING, 10))
    rows = store.fetch_all("SELECT * FROM staking_params")
    assert len(rows) == 1
    assert json.loads(rows[0]["params"]) == STAKING
    assert rows[0]["height"] == 10


def test_get_staking_params(store):
    store.fetch_all("INSERT INTO staking_params (params, height) VALUES (?, ?)", json.dumps(STAKING), 10)
    assert store.get_staking_params() == StakingParams(params=STAKING, height=10)


def test_get_staking_params_missing(store):
    with pytest.raises(DatabaseError, match="no staking params found"):
        store.get_staking_params()


def test_save_staking_params_rejects_unserialisable(store):
    with pytest.raises(ValueError):
        store.save_staking_params(StakingParams({"bad": object()}, 1))


def _pool_rows(store):
    rows = store.fetch_all("SELECT * FROM staking_pool")
    return [(int(r["bonded_tokens"]), int(r["not_bonded_tokens"]), r["height"]) for r in rows]


def test_save_staking_pool(store):
    store.save_staking_pool(Pool(50, 100, 10))
    assert _pool_rows(store) == [(50, 100, 10)]

    store.save_staking_pool(Pool(1, 1, 8))
    assert _pool_rows(store) == [(50, 100, 10)]

    store.save_staking_pool(Pool(1, 1, 10))
    assert _pool_rows(store) == [(1, 1, 10)]

    store.save_staking_pool(Pool(1000000, 1000000, 20))
    assert _pool_rows(store) == [(1000000, 1000000, 20)]