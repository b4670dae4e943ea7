import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from web3.exceptions import TransactionNotFound, Web3RPCError

from conftest import ADDRESS_2, RECIPIENT
from middleware import EndpointError, PendingTransaction, Provider, Web3Endpoint
from transactions import AccessListTransaction, FeeMarketTransaction, LegacyTransaction


def test_fill_fee_market_fields(endpoint, provider):
    tx = asyncio.run(provider.fill_transaction(FeeMarketTransaction(to=RECIPIENT)))
    assert tx.max_priority_fee_per_gas == endpoint.tip_value
    assert tx.max_fee_per_gas == 2 * endpoint.base_fee_value + endpoint.tip_value
    assert tx.gas == endpoint.gas_estimate


def test_fill_keeps_caller_fees(provider):
    tx = FeeMarketTransaction(to=RECIPIENT, max_priority_fee_per_gas=3, max_fee_per_gas=4, gas=60000)
    asyncio.run(provider.fill_transaction(tx))
    assert (tx.max_priority_fee_per_gas, tx.max_fee_per_gas, tx.gas) == (3, 4, 60000)


@pytest.mark.parametrize("cls", [LegacyTransaction, AccessListTransaction])
def test_fill_gas_price(endpoint, provider, cls):
    tx = asyncio.run(provider.fill_transaction(cls(to=RECIPIENT)))
    assert tx.gas_price == endpoint.gas_price_value


def test_provider_cannot_sign(provider):
    with pytest.raises(Provider.Unsupported):
        asyncio.run(provider.sign(b"x", ADDRESS_2))
    with pytest.raises(Provider.Unsupported):
        asyncio.run(provider.sign_transaction(LegacyTransaction(to=RECIPIENT), ADDRESS_2))
    assert provider.default_sender() is None
    assert provider.is_signer() is False
    assert provider.inner is None


def test_send_raw_returns_pending(endpoint, provider):
    pending = asyncio.run(provider.send_raw_transaction(b"\xc0"))
    assert isinstance(pending, PendingTransaction)
    assert endpoint.raw_sent == [b"\xc0"]
    assert len(pending.tx_hash) == 32


def test_endpoint_error_is_wrapped(endpoint, provider):
    endpoint.send_error = EndpointError("rpc_error", "boom", {})
    with pytest.raises(Provider.Error) as e:
        asyncio.run(provider.send_raw_transaction(b"\xc0"))
    assert e.value.as_inner() is endpoint.send_error


def test_reads_delegate(endpoint, provider):
    assert asyncio.run(provider.get_chainid()) == 1337
    assert asyncio.run(provider.get_block_number()) == endpoint.block
    assert asyncio.run(provider.get_transaction_count(ADDRESS_2)) == 0
    assert asyncio.run(provider.call({"to": RECIPIENT})) == b"\x01"
    assert asyncio.run(provider.create_access_list(LegacyTransaction(to=RECIPIENT))).gas_used == 21_000


def _endpoint_with(eth):
    ep = Web3Endpoint("http://127.0.0.1:8545")
    ep._w3 = MagicMock(eth=eth)
    return ep


def test_web3_endpoint_requires_url(monkeypatch):
    from middleware import web3_endpoint

    monkeypatch.setattr(web3_endpoint.settings, "RPC_URL", None)
    with pytest.raises(ValueError):
        Web3Endpoint()


def test_web3_endpoint_translates_rpc_errors():
    eth = MagicMock()
    eth.send_raw_transaction = AsyncMock(side_effect=Web3RPCError("nonce too low"))
    ep = _endpoint_with(eth)
    with pytest.raises(EndpointError) as e:
        asyncio.run(ep.send_raw_transaction(b"\x01"))
    assert e.value.code == "rpc_error"
    assert "nonce too low" in e.value.message


def test_web3_endpoint_translates_transport_errors():
    eth = MagicMock()
    eth.get_transaction_count = AsyncMock(side_effect=aiohttp.ClientConnectionError("refused"))
    ep = _endpoint_with(eth)
    with pytest.raises(EndpointError) as e:
        asyncio.run(ep.transaction_count(ADDRESS_2, "pending"))
    assert e.value.code == "transport_error"
    eth.get_transaction_count.assert_called_once_with(ADDRESS_2, block_identifier="pending")


def test_web3_endpoint_honours_block_zero():
    eth = MagicMock()
    eth.get_transaction_count = AsyncMock(return_value=4)
    ep = _endpoint_with(eth)
    assert asyncio.run(ep.transaction_count(ADDRESS_2, 0)) == 4
    eth.get_transaction_count.assert_called_once_with(ADDRESS_2, block_identifier=0)

    eth.get_transaction_count.reset_mock()
    asyncio.run(ep.transaction_count(ADDRESS_2))
    eth.get_transaction_count.assert_called_once_with(ADDRESS_2, block_identifier="latest")


def test_web3_endpoint_missing_receipt_is_none():
    eth = MagicMock()
    eth.get_transaction_receipt = AsyncMock(side_effect=TransactionNotFound("not found"))
    ep = _endpoint_with(eth)
    assert asyncio.run(ep.transaction_receipt(b"\x00" * 32)) is None


def test_web3_endpoint_passes_tx_params():
    eth = MagicMock()
    eth.estimate_gas = AsyncMock(return_value=30000)
    eth.create_access_list = AsyncMock(
        return_value={"accessList": [{"address": ADDRESS_2.lower(), "storageKeys": ["0x" + "00" * 32]}], "gasUsed": 25000}
    )
    ep = _endpoint_with(eth)
    tx = FeeMarketTransaction(to=RECIPIENT, value=1)

    assert asyncio.run(ep.estimate_gas(tx)) == 30000
    params = eth.estimate_gas.call_args.args[0]
    assert params["to"] == RECIPIENT
    assert params["type"] == 2

    result = asyncio.run(ep.create_access_list(tx))
    assert result.gas_used == 25000
    assert result.access_list[0].address == ADDRESS_2
