"""Endorsement of transactions and generation of transaction ids."""

from __future__ import annotations

import hashlib
import os
from typing import BinaryIO, Protocol

from fxconfig.txmodel import EndorsementWithIdentity, Endorsements, Identity, Tx

_NONCE_SIZE = 24


class EndorseError(RuntimeError):
    """Raised when a transaction cannot be endorsed."""


class SigningIdentity(Protocol):
    """An identity able to sign messages and to serialize itself."""

    def sign(self, message: bytes) -> bytes:
        """Return a signature over the message."""
        ...

    def serialize(self) -> bytes:
        """Return the encoded identity, certificate attached."""
        ...


def endorse(signer: SigningIdentity, tx_id: str, tx: Tx | None) -> Tx:
    """Return a copy of the transaction with the signer's endorsement added to every namespace."""
    if tx is None:
        raise EndorseError("nil transaction")
    tx = tx.clone()

    missing = len(tx.namespaces) - len(tx.endorsements)
    if missing > 0:
        tx.endorsements.extend([None] * missing)

    identity = Identity.from_bytes(signer.serialize())

    for ns_idx, namespace in enumerate(tx.namespaces):
        try:
            message = namespace.asn1_marshal(tx_id)
        except ValueError as exc:
            raise EndorseError(f"failed asn1 marshal tx: {exc}") from exc
        try:
            signature = signer.sign(message)
        except Exception as exc:
            raise EndorseError(f"failed signing tx: {exc}") from exc

        if tx.endorsements[ns_idx] is None:
            tx.endorsements[ns_idx] = Endorsements()
        tx.endorsements[ns_idx].endorsements_with_identity.append(
            EndorsementWithIdentity(endorsement=signature, identity=identity)
        )
    return tx


def read_nonce(source: BinaryIO | None = None) -> bytes:
    """Read a 24-byte nonce from the source, or from the system's secure random source."""
    if source is None:
        return os.urandom(_NONCE_SIZE)
    try:
        value = source.read(_NONCE_SIZE)
    except Exception as exc:
        raise EndorseError(f"error while creating nonce: {exc}") from exc
    if value is None or len(value) != _NONCE_SIZE:
        actual = 0 if value is None else len(value)
        raise EndorseError(
            f"cannot read enough bytes for nonce actual: {actual} wanted: {_NONCE_SIZE}"
        )
    return bytes(value)


def generate_tx_id() -> str:
    """Return a new transaction id: the hex SHA-256 of a random nonce."""
    return hashlib.sha256(read_nonce(None)).hexdigest()