import asyncio
import os

import pytest

from conftest import ADDRESS_2, RECIPIENT, RecordingMiddleware
from core.settings import Settings
from middleware import (
    AllowEverything,
    PolicyConfig,
    PolicyMiddleware,
    PolicyViolation,
    PredicatePolicy,
    RejectEverything,
    RulesPolicy,
    SignerMiddleware,
    policy_config_from_env,
    policy_from_settings,
)
from observability import Metrics
from transactions import FeeMarketTransaction, LegacyTransaction


def test_reject_everything_never_reaches_inner(provider, wallet):
    recorder = RecordingMiddleware(SignerMiddleware(provider, wallet))
    metrics = Metrics()
    stack = PolicyMiddleware(recorder, RejectEverything(), metrics=metrics)

    for _ in range(3):
        with pytest.raises(PolicyMiddleware.PolicyError) as e:
            asyncio.run(stack.send_transaction(LegacyTransaction(to=RECIPIENT)))
        assert e.value.code == "policy_rejected"
        assert isinstance(e.value.__cause__, PolicyViolation)

    with pytest.raises(PolicyMiddleware.PolicyError):
        asyncio.run(stack.fill_transaction(LegacyTransaction(to=RECIPIENT)))

    assert recorder.calls == []
    assert metrics.counter("policy_rejected_total") == 4


def test_reads_pass_through_unchecked(provider, wallet):
    recorder = RecordingMiddleware(SignerMiddleware(provider, wallet))
    stack = PolicyMiddleware(recorder, RejectEverything())
    assert asyncio.run(stack.call(LegacyTransaction(to=RECIPIENT))) == b"\x01"
    assert asyncio.run(stack.estimate_gas(LegacyTransaction(to=RECIPIENT))) == 21_000
    assert recorder.ops() == ["call", "estimate_gas"]


def test_allow_everything_forwards(endpoint, provider, wallet):
    stack = PolicyMiddleware(SignerMiddleware(provider, wallet), AllowEverything())
    asyncio.run(stack.send_transaction(LegacyTransaction(to=RECIPIENT)))
    assert len(endpoint.raw_sent) == 1


def test_predicate_sees_resolved_sender(endpoint, provider, wallet):
    seen = []

    def only_small(tx, sender):
        seen.append(sender)
        return tx.value < 100

    stack = PolicyMiddleware(SignerMiddleware(provider, wallet), PredicatePolicy(only_small))
    asyncio.run(stack.send_transaction(LegacyTransaction(to=RECIPIENT, value=1)))
    with pytest.raises(PolicyMiddleware.PolicyError) as e:
        asyncio.run(stack.send_transaction(LegacyTransaction(to=RECIPIENT, value=1000)))
    assert e.value.data["code"] == "predicate_rejected"
    assert seen == [wallet.address, wallet.address]
    assert len(endpoint.raw_sent) == 1


@pytest.mark.parametrize(
    "cfg,tx,code",
    [
        (PolicyConfig(disallow_contract_creation=True), LegacyTransaction(to=None), "contract_creation_not_allowed"),
        (PolicyConfig(allowed_chain_ids=frozenset({1})), LegacyTransaction(to=RECIPIENT, chain_id=5), "chain_id_not_allowed"),
        (PolicyConfig(allowed_to_addresses=frozenset({ADDRESS_2.lower()})), LegacyTransaction(to=RECIPIENT), "to_not_allowed"),
        (PolicyConfig(max_value_wei=10), LegacyTransaction(to=RECIPIENT, value=11), "value_too_large"),
        (PolicyConfig(max_gas=21000), LegacyTransaction(to=RECIPIENT, gas=50000), "gas_too_large"),
        (PolicyConfig(max_gas_price_wei=5), FeeMarketTransaction(to=RECIPIENT, max_fee_per_gas=6), "gas_price_too_large"),
        (PolicyConfig(max_data_bytes=1), LegacyTransaction(to=RECIPIENT, data=b"\x00\x01"), "data_too_large"),
    ],
)
def test_rules_policy_violations(cfg, tx, code):
    with pytest.raises(PolicyViolation) as e:
        RulesPolicy(cfg).ensure_can_send(tx, None)
    assert e.value.code == code


def test_rules_policy_skips_unset_fields():
    cfg = PolicyConfig(max_gas=1, max_gas_price_wei=1, allowed_chain_ids=frozenset({1}))
    RulesPolicy(cfg).ensure_can_send(LegacyTransaction(to=RECIPIENT), None)


def test_policy_config_from_env(monkeypatch):
    for k in list(os.environ.keys()):
        if k.startswith("POLICY_"):
            monkeypatch.delenv(k, raising=False)
    assert isinstance(policy_from_settings(Settings()), AllowEverything)

    monkeypatch.setenv("POLICY_ALLOWED_TO_ADDRESSES", ADDRESS_2)
    monkeypatch.setenv("POLICY_MAX_VALUE_WEI", "0x10")
    monkeypatch.setenv("POLICY_ALLOWED_CHAIN_IDS", "1, 0x89")
    cfg = policy_config_from_env(Settings())
    assert cfg.allowed_to_addresses == frozenset({ADDRESS_2.lower()})
    assert cfg.max_value_wei == 16
    assert cfg.allowed_chain_ids == frozenset({1, 137})

    policy = policy_from_settings(Settings())
    assert isinstance(policy, RulesPolicy)
    policy.ensure_can_send(LegacyTransaction(to=ADDRESS_2, value=16, chain_id=137), None)
