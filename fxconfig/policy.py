"""Construction of namespace policies from policy expressions or public keys."""

from __future__ import annotations

import base64
import binascii
import re
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from fxconfig.policydsl import from_string
from fxconfig.txmodel import NamespacePolicy, ThresholdRule

_PEM_BLOCK = re.compile(rb"-----BEGIN ([^\r\n-]*)-----\r?\n(.*?)-----END \1-----", re.S)


class PolicyError(ValueError):
    """Raised when a policy cannot be built from its input."""


def create_msp_policy(policy: str) -> NamespacePolicy:
    """Build an MSP-based policy from an expression such as "OR('Org1MSP.member')"."""
    return NamespacePolicy(msp_rule=from_string(policy).serialize())


def create_threshold_policy(path: str) -> NamespacePolicy:
    """Build a threshold ECDSA policy from a PEM file holding an ECDSA key or certificate."""
    public_key = public_key_from_pem(Path(path).read_bytes())
    return NamespacePolicy(threshold_rule=ThresholdRule(scheme="ECDSA", public_key=public_key))


def _pem_blocks(pem_content: bytes):
    for match in _PEM_BLOCK.finditer(pem_content):
        try:
            yield base64.b64decode(b"".join(match.group(2).split()), validate=True)
        except (binascii.Error, ValueError):
            continue


def _ecdsa_key(der: bytes) -> ec.EllipticCurvePublicKey | None:
    try:
        cert = x509.load_der_x509_certificate(der)
    except ValueError:
        pass
    else:
        try:
            key = cert.public_key()
        except (ValueError, UnsupportedAlgorithm):
            return None
        return key if isinstance(key, ec.EllipticCurvePublicKey) else None
    try:
        key = serialization.load_der_public_key(der)
    except (ValueError, UnsupportedAlgorithm):
        return None
    return key if isinstance(key, ec.EllipticCurvePublicKey) else None


def public_key_from_pem(pem_content: bytes) -> bytes:
    """Return, PEM-encoded, the first ECDSA public key found in the PEM blocks given."""
    for der in _pem_blocks(pem_content):
        key = _ecdsa_key(der)
        if key is not None:
            return key.public_bytes(
                serialization.Encoding.PEM,
                serialization.PublicFormat.SubjectPublicKeyInfo,
            )
    raise PolicyError("no ECDSA public key in pem file")