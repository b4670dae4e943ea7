import json

import pytest
from eth_account import Account

from conftest import ADDRESS_1, ADDRESS_2, ADDRESS_3, KEY_1, KEY_2, KEY_3
from primitives.address import public_key_to_address
from primitives.hashing import hash_message
from primitives.signature import Signature, SignatureError, to_eip155_v
from signing.base import WalletError
from signing.keys import LocalKey
from signing.wallet import Wallet
from transactions.typed import LegacyTransaction


@pytest.mark.parametrize(
    "key,address",
    [(KEY_1, ADDRESS_1), (KEY_2, ADDRESS_2), (KEY_3, ADDRESS_3)],
)
def test_golden_addresses(key, address):
    assert Wallet.from_key(key).address == address


def test_address_from_public_key_matches_wallet():
    key = LocalKey(KEY_1)
    from eth_keys import keys

    pub = keys.PrivateKey(key.to_bytes()).public_key.to_bytes()
    assert public_key_to_address(pub) == ADDRESS_1
    assert public_key_to_address(b"\x04" + pub) == ADDRESS_1


def test_sign_message_is_deterministic_and_recoverable():
    w = Wallet.from_key(KEY_2)
    a = w.sign_message(b"hello world")
    b = w.sign_message(b"hello world")
    assert a == b
    assert a.recover(b"hello world") == w.address
    a.verify(b"hello world", w.address)
    with pytest.raises(SignatureError):
        a.verify(b"hello world", ADDRESS_1)


def test_sign_message_signs_prefixed_hash_not_raw_bytes():
    w = Wallet.from_key(KEY_1)
    sig = w.sign_message("abc")
    assert sig == w.sign_hash(hash_message(b"abc"))
    assert sig.recover_hash(hash_message(b"abc")) == w.address


def test_message_signature_matches_eth_account():
    from eth_account.messages import encode_defunct

    w = Wallet.from_key(KEY_3)
    expected = Account.sign_message(encode_defunct(text="pipeline"), private_key=KEY_3)
    sig = w.sign_message("pipeline")
    assert (sig.r, sig.s, sig.v) == (expected.r, expected.s, expected.v)


def test_base_v_in_27_28():
    w = Wallet.from_key(KEY_1)
    for i in range(8):
        assert w.sign_message(bytes([i])).v in (27, 28)


@pytest.mark.parametrize("chain_id", [0, 1, 56, 1337, 2**31])
def test_eip155_v_range(chain_id):
    w = Wallet.from_key(KEY_1, chain_id=chain_id)
    tx = LegacyTransaction(to=ADDRESS_2, nonce=0, gas=21000, gas_price=1, value=1)
    sig = w.sign_transaction(tx)
    assert sig.v in (35 + 2 * chain_id, 36 + 2 * chain_id)
    assert to_eip155_v(sig.recovery_id, chain_id) == sig.v


def test_sign_transaction_prefers_tx_chain_id():
    w = Wallet.from_key(KEY_1, chain_id=1)
    tx = LegacyTransaction(to=ADDRESS_2, nonce=0, gas=21000, gas_price=1, chain_id=5)
    assert w.sign_transaction(tx).v in (45, 46)
    # the caller's transaction is left alone
    assert tx.chain_id == 5


def test_with_chain_id_returns_new_wallet():
    w = Wallet.from_key(KEY_1, chain_id=1)
    w2 = w.with_chain_id(10)
    assert w.chain_id == 1
    assert w2.chain_id == 10
    assert w2.address == w.address
    assert w != w2


def test_equality_by_key_address_and_chain():
    assert Wallet.from_key(KEY_1) == Wallet.from_key(KEY_1)
    assert Wallet.from_key(KEY_1) != Wallet.from_key(KEY_2)
    assert hash(Wallet.from_key(KEY_1)) == hash(Wallet.from_key(KEY_1))


def test_repr_hides_key():
    w = Wallet.from_key(KEY_3)
    assert ADDRESS_3 in repr(w)
    assert KEY_3[2:] not in repr(w)
    assert KEY_3[2:] not in repr(w.key)


def test_create_generates_distinct_wallets():
    assert Wallet.create().address != Wallet.create().address


@pytest.mark.parametrize("bad", ["0x1234", "zz" * 32, "0x" + "00" * 32, "0x" + "ff" * 32])
def test_invalid_private_keys_rejected(bad):
    with pytest.raises(WalletError):
        Wallet.from_key(bad)


def test_from_keystore_round_trip(tmp_path):
    keystore = Account.encrypt(KEY_2, "pw", kdf="pbkdf2", iterations=2)
    path = tmp_path / "key.json"
    path.write_text(json.dumps(keystore))

    w = Wallet.from_keystore(path, "pw", chain_id=5)
    assert w.address == ADDRESS_2
    assert w.chain_id == 5

    with pytest.raises(WalletError) as e:
        Wallet.from_keystore(path, "wrong")
    assert e.value.code == "keystore_decrypt_failed"


def test_from_keystore_missing_file(tmp_path):
    with pytest.raises(WalletError) as e:
        Wallet.from_keystore(tmp_path / "nope.json", "pw")
    assert e.value.code == "keystore_not_found"


def test_from_env(monkeypatch):
    monkeypatch.setenv("PRIVATE_KEY", KEY_1)
    assert Wallet.from_env().address == ADDRESS_1
    monkeypatch.delenv("PRIVATE_KEY")
    with pytest.raises(ValueError):
        Wallet.from_env()


def test_signature_bytes_round_trip():
    sig = Wallet.from_key(KEY_1).sign_message(b"x")
    raw = sig.to_bytes()
    assert len(raw) == 65
    assert Signature.from_bytes(raw) == sig
