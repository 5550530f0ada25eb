from __future__ import annotations

import logging
import secrets

from eth_account import Account as EthAccount
from eth_account.messages import encode_defunct


logger = logging.getLogger(__name__)

NONCE_UPPER_BOUND = 1_000_000_000
NONCE_MESSAGE_TEMPLATE = "I am signing my one-time nonce: {nonce}"


def generate_nonce() -> int:
    return secrets.randbelow(NONCE_UPPER_BOUND)


def nonce_message(nonce: int) -> str:
    return NONCE_MESSAGE_TEMPLATE.format(nonce=nonce)


def recover_address(message: str, signature: str | bytes) -> str | None:
    """Recover the personal-sign (EIP-191) signer of ``message``; ``None`` when recovery fails."""
    try:
        return EthAccount.recover_message(encode_defunct(text=message), signature=signature)
    except Exception as exc:  # noqa: BLE001 - any malformed signature is a failed verification
        logger.info("signature_recovery_failed error=%s", type(exc).__name__)
        return None


def verify_signature(message: str, signature: str | bytes, address: str) -> bool:
    if not signature or not address:
        return False
    recovered = recover_address(message, signature)
    if recovered is None:
        return False
    return recovered.lower() == address.lower()
