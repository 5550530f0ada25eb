from __future__ import annotations

from eth_account import Account as EthAccount

from tenantkey.services.crypto.signatures import (
    NONCE_UPPER_BOUND,
    generate_nonce,
    nonce_message,
    recover_address,
    verify_signature,
)
from tenantkey.tests.utils.principals import sign_nonce


def test_nonce_message_format() -> None:
    assert nonce_message(42) == "I am signing my one-time nonce: 42"


def test_generate_nonce_in_range() -> None:
    nonces = {generate_nonce() for _ in range(50)}
    assert all(0 <= n < NONCE_UPPER_BOUND for n in nonces)
    assert len(nonces) > 1


def test_signature_recovers_signer() -> None:
    signer = EthAccount.create()
    signature = sign_nonce(signer, 1234)
    assert recover_address(nonce_message(1234), signature) == signer.address
    assert verify_signature(nonce_message(1234), signature, signer.address.lower())


def test_signature_over_other_nonce_fails() -> None:
    signer = EthAccount.create()
    signature = sign_nonce(signer, 1234)
    assert not verify_signature(nonce_message(4321), signature, signer.address)


def test_signature_from_other_wallet_fails() -> None:
    signature = sign_nonce(EthAccount.create(), 7)
    assert not verify_signature(nonce_message(7), signature, EthAccount.create().address)


def test_garbage_signature_is_a_failed_verification() -> None:
    assert recover_address(nonce_message(7), "0xdeadbeef") is None
    assert not verify_signature(nonce_message(7), "not-hex", "0xabc")
    assert not verify_signature(nonce_message(7), "", "0xabc")
