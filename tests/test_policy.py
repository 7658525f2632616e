from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

from fxconfig.policy import (
    PolicyError,
    create_msp_policy,
    create_threshold_policy,
    public_key_from_pem,
)
from fxconfig.policydsl import PolicyParseError, from_string

SPKI = serialization.PublicFormat.SubjectPublicKeyInfo


@pytest.fixture(scope="module")
def ec_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="module")
def rsa_pem():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.public_key().public_bytes(serialization.Encoding.PEM, SPKI)


def public_pem(key):
    return key.public_key().public_bytes(serialization.Encoding.PEM, SPKI)


def certificate_pem(key):
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "test")])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(1)
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM)


def test_msp_policy_holds_serialized_envelope():
    expression = "OR('Org1MSP.member', 'Org2MSP.member')"
    policy = create_msp_policy(expression)
    assert policy.threshold_rule is None
    assert policy.msp_rule == from_string(expression).serialize()


def test_msp_policy_invalid_expression():
    with pytest.raises(PolicyParseError):
        create_msp_policy("NOT_A_POLICY")


def test_public_key_from_public_key_pem(ec_key):
    assert public_key_from_pem(public_pem(ec_key)) == public_pem(ec_key)


def test_public_key_from_certificate(ec_key):
    result = public_key_from_pem(certificate_pem(ec_key))
    assert result.startswith(b"-----BEGIN PUBLIC KEY-----")
    assert result == public_pem(ec_key)


def test_public_key_skips_non_ecdsa_blocks(ec_key, rsa_pem):
    assert public_key_from_pem(rsa_pem + public_pem(ec_key)) == public_pem(ec_key)


def test_public_key_rsa_only(rsa_pem):
    with pytest.raises(PolicyError, match="no ECDSA public key in pem file"):
        public_key_from_pem(rsa_pem)


def test_public_key_no_pem():
    with pytest.raises(PolicyError, match="no ECDSA public key in pem file"):
        public_key_from_pem(b"not a pem file")


def test_threshold_policy_from_file(tmp_path, ec_key):
    path = tmp_path / "cert.pem"
    path.write_bytes(certificate_pem(ec_key))
    policy = create_threshold_policy(str(path))
    assert policy.msp_rule is None
    assert policy.threshold_rule.scheme == "ECDSA"
    loaded = serialization.load_pem_public_key(policy.threshold_rule.public_key)
    assert loaded.public_numbers() == ec_key.public_key().public_numbers()


def test_threshold_policy_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        create_threshold_policy(str(tmp_path / "missing.pem"))


def test_threshold_policy_without_ecdsa_key(tmp_path, rsa_pem):
    path = tmp_path / "rsa.pem"
    path.write_bytes(rsa_pem)
    with pytest.raises(PolicyError):
        create_threshold_policy(str(path))