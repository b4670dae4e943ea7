from unittest.mock import MagicMock, patch

import pytest
import requests
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature
from eth_keys import keys

from conftest import ADDRESS_1, KEY_1, KEY_2
from core.settings import Settings, SettingsValidationError
from primitives.signature import SECP256K1_N
from signing import RemoteKey, Wallet, WalletError, build_signer


def _response(payload):
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


def _der_for(msg_hash: bytes, *, high_s: bool = False) -> str:
    sig = keys.PrivateKey(bytes.fromhex(KEY_1[2:])).sign_msg_hash(msg_hash)
    s = SECP256K1_N - sig.s if high_s else sig.s
    return "0x" + encode_dss_signature(sig.r, s).hex()


def test_remote_key_requires_url():
    with patch.dict("os.environ", {}, clear=True):
        with pytest.raises(ValueError):
            RemoteKey()


@pytest.mark.parametrize("high_s", [False, True])
def test_remote_key_signs_and_recovers(high_s):
    digest = b"\x42" * 32
    with patch("signing.keys.requests.get", return_value=_response({"address": ADDRESS_1.lower()})) as get:
        with patch(
            "signing.keys.requests.post",
            return_value=_response({"ok": True, "signature_der_hex": _der_for(digest, high_s=high_s)}),
        ) as post:
            key = RemoteKey("http://signer/")
            r, s, recid = key.sign_prehash(digest)

    local = keys.PrivateKey(bytes.fromhex(KEY_1[2:])).sign_msg_hash(digest)
    assert (r, s, recid) == (local.r, local.s, local.v)
    post.assert_called_once()
    assert post.call_args.kwargs["json"] == {"digest_hex": "0x" + digest.hex()}
    get.assert_called_once()


def test_remote_wallet_message_signature_matches_local():
    local = Wallet.from_key(KEY_1)
    def fake_post(url, json, timeout):
        digest = bytes.fromhex(json["digest_hex"][2:])
        return _response({"ok": True, "signature_der_hex": _der_for(digest)})

    with patch("signing.keys.requests.get", return_value=_response({"address": ADDRESS_1})):
        with patch("signing.keys.requests.post", side_effect=fake_post):
            remote = Wallet(RemoteKey("http://signer"))
            sig = remote.sign_message(b"hello")

    assert remote.address == ADDRESS_1
    assert sig == local.sign_message(b"hello")


def test_remote_key_refusal():
    with patch("signing.keys.requests.get", return_value=_response({"address": ADDRESS_1})):
        with patch("signing.keys.requests.post", return_value=_response({"ok": False})):
            with pytest.raises(WalletError) as e:
                RemoteKey("http://signer").sign_prehash(b"\x00" * 32)
    assert e.value.code == "remote_sign_failed"


def test_remote_key_wrong_address():
    digest = b"\x01" * 32
    other = Wallet.from_key(KEY_2).address
    with patch("signing.keys.requests.get", return_value=_response({"address": other})):
        with patch(
            "signing.keys.requests.post",
            return_value=_response({"ok": True, "signature_der_hex": _der_for(digest)}),
        ):
            with pytest.raises(WalletError) as e:
                RemoteKey("http://signer").sign_prehash(digest)
    assert e.value.code == "recovery_id_not_found"


def test_remote_key_unreachable():
    with patch("signing.keys.requests.get", side_effect=requests.ConnectionError("down")):
        with pytest.raises(WalletError) as e:
            RemoteKey("http://signer").address
    assert e.value.code == "remote_unreachable"


def test_build_signer_from_settings(monkeypatch):
    monkeypatch.setenv("SIGNER_TYPE", "private_key")
    monkeypatch.setenv("PRIVATE_KEY", KEY_1)
    monkeypatch.setenv("CHAIN_ID", "10")
    w = build_signer(Settings())
    assert w.address == ADDRESS_1
    assert w.chain_id == 10

    monkeypatch.delenv("PRIVATE_KEY")
    with pytest.raises(SettingsValidationError):
        build_signer(Settings())


def test_build_remote_signer(monkeypatch):
    monkeypatch.setenv("SIGNER_TYPE", "remote")
    monkeypatch.setenv("SIGNER_REMOTE_URL", "http://signer")
    monkeypatch.delenv("CHAIN_ID", raising=False)
    with patch("signing.keys.requests.get", return_value=_response({"address": ADDRESS_1})):
        w = build_signer(Settings())
    assert w.address == ADDRESS_1
    assert isinstance(w.key, RemoteKey)
    assert w.chain_id == 1


def test_remote_keys_compare_by_service_and_address():
    with patch("signing.keys.requests.get", return_value=_response({"address": ADDRESS_1})):
        a, b = RemoteKey("http://signer/"), RemoteKey("http://signer")
        assert a == b
        assert hash(a) == hash(b)
        assert Wallet(a) == Wallet(b)
        assert len({Wallet(a), Wallet(b)}) == 1
        assert a != RemoteKey("http://other-signer")
