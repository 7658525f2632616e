import io

import pytest

from fxconfig.endorse import EndorseError, endorse, generate_tx_id, read_nonce
from fxconfig.txmodel import (
    EndorsementWithIdentity,
    Endorsements,
    Identity,
    Tx,
    TxNamespace,
)


class MockSigningIdentity:
    def __init__(self, msp_id, fail=False):
        self.msp_id = msp_id
        self.fail = fail
        self.messages = []

    def sign(self, message):
        if self.fail:
            raise RuntimeError("signing failed")
        self.messages.append(message)
        return b"mock-signature"

    def serialize(self):
        return Identity(msp_id=self.msp_id).serialize()


@pytest.mark.parametrize(
    "tx, tx_id",
    [
        (Tx(namespaces=[TxNamespace(ns_id="test-ns", ns_version=0)]), "tx-123"),
        (
            Tx(
                namespaces=[
                    TxNamespace(ns_id="ns1", ns_version=0),
                    TxNamespace(ns_id="ns2", ns_version=1),
                    TxNamespace(ns_id="ns3", ns_version=2),
                ]
            ),
            "tx-456",
        ),
    ],
)
def test_successful_endorsement(tx, tx_id):
    signer = MockSigningIdentity("Org1MSP")
    result = endorse(signer, tx_id, tx)
    assert len(result.endorsements) == len(tx.namespaces)
    for endorsement_set in result.endorsements:
        assert len(endorsement_set.endorsements_with_identity) == 1
        entry = endorsement_set.endorsements_with_identity[0]
        assert entry.endorsement == b"mock-signature"
        assert entry.identity.msp_id == "Org1MSP"
    assert signer.messages == [ns.asn1_marshal(tx_id) for ns in tx.namespaces]


def test_signing_failure():
    tx = Tx(namespaces=[TxNamespace(ns_id="test-ns")])
    with pytest.raises(EndorseError, match="failed signing tx"):
        endorse(MockSigningIdentity("Org1MSP", fail=True), "tx-789", tx)


def test_nil_transaction():
    with pytest.raises(EndorseError, match="nil transaction"):
        endorse(MockSigningIdentity("Org1MSP"), "tx", None)


def test_endorse_appends_and_leaves_input_unchanged():
    existing = EndorsementWithIdentity(b"old", Identity(msp_id="Org2MSP"))
    tx = Tx(namespaces=[TxNamespace(ns_id="ns")], endorsements=[Endorsements([existing])])
    result = endorse(MockSigningIdentity("Org1MSP"), "tx", tx)
    ids = [e.identity.msp_id for e in result.endorsements[0].endorsements_with_identity]
    assert ids == ["Org2MSP", "Org1MSP"]
    assert len(tx.endorsements[0].endorsements_with_identity) == 1


def test_generate_tx_id_is_hex_sha256():
    tx_id = generate_tx_id()
    assert len(tx_id) == 64
    assert len(bytes.fromhex(tx_id)) == 32


def test_generate_tx_id_is_unique():
    ids = [generate_tx_id() for _ in range(20)]
    assert len(set(ids)) == 20
    assert all(len(tx_id) == 64 for tx_id in ids)


def test_read_nonce_from_source():
    data = bytes(range(24))
    assert read_nonce(io.BytesIO(data + b"extra")) == data


def test_read_nonce_default_length():
    assert len(read_nonce(None)) == 24


def test_read_nonce_short_source():
    with pytest.raises(EndorseError, match="cannot read enough bytes for nonce"):
        read_nonce(io.BytesIO(b"short"))


def test_read_nonce_failing_source():
    class Broken:
        def read(self, size):
            raise OSError("boom")

    with pytest.raises(EndorseError, match="error while creating nonce"):
        read_nonce(Broken())