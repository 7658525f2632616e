"""Transaction data model with the wire encodings needed to sign and store it."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field

_FIXED_SIZES = {1: 8, 5: 4}


def _varint(value: int) -> bytes:
    value &= (1 << 64) - 1
    out = bytearray()
    while value > 0x7F:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def _bytes_field(number: int, payload: bytes) -> bytes:
    return _varint((number << 3) | 2) + _varint(len(payload)) + payload


def _read_varint(data: bytes, pos: int) -> tuple[int, int]:
    result = shift = 0
    while True:
        if pos >= len(data):
            raise ValueError("truncated varint")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
        if shift >= 64:
            raise ValueError("varint overflow")


def _fields(data: bytes):
    """Yield (field number, wire type, value) for each field of an encoded message."""
    pos = 0
    while pos < len(data):
        key, pos = _read_varint(data, pos)
        wire_type = key & 7
        if wire_type == 0:
            value, pos = _read_varint(data, pos)
        else:
            if wire_type == 2:
                size, pos = _read_varint(data, pos)
            elif wire_type in _FIXED_SIZES:
                size = _FIXED_SIZES[wire_type]
            else:
                raise ValueError(f"unsupported wire type {wire_type}")
            value, pos = data[pos : pos + size], pos + size
            if pos > len(data):
                raise ValueError("truncated message")
        yield key >> 3, wire_type, value


def _der(tag: int, content: bytes) -> bytes:
    size = len(content)
    if size < 0x80:
        length = bytes([size])
    else:
        raw = size.to_bytes((size.bit_length() + 7) // 8, "big")
        length = bytes([0x80 | len(raw)]) + raw
    return bytes([tag]) + length + content


def _der_int(value: int) -> bytes:
    return _der(0x02, value.to_bytes(value.bit_length() // 8 + 1, "big", signed=True))


def _der_seq(*items: bytes) -> bytes:
    return _der(0x30, b"".join(items))


@dataclass
class Identity:
    """A signer identity: the MSP id together with a certificate or its id."""

    msp_id: str = ""
    certificate: bytes | None = None
    certificate_id: str | None = None

    def serialize(self) -> bytes:
        """Return the protobuf wire encoding."""
        out = _bytes_field(1, self.msp_id.encode("utf-8")) if self.msp_id else b""
        if self.certificate is not None:
            out += _bytes_field(2, self.certificate)
        elif self.certificate_id is not None:
            out += _bytes_field(3, self.certificate_id.encode("utf-8"))
        return out

    @classmethod
    def from_bytes(cls, data: bytes) -> Identity:
        """Decode an identity from its protobuf wire encoding."""
        identity = cls()
        for number, wire_type, value in _fields(bytes(data)):
            if number not in (1, 2, 3):
                continue
            if wire_type != 2:
                raise ValueError(f"field {number} has wrong wire type {wire_type}")
            if number == 1:
                identity.msp_id = value.decode("utf-8")
            elif number == 2:
                identity.certificate, identity.certificate_id = bytes(value), None
            else:
                identity.certificate_id, identity.certificate = value.decode("utf-8"), None
        return identity


@dataclass
class EndorsementWithIdentity:
    """A signature over a namespace and the identity that made it."""

    endorsement: bytes = b""
    identity: Identity | None = None


@dataclass
class Endorsements:
    """All endorsements collected for one namespace."""

    endorsements_with_identity: list[EndorsementWithIdentity] = field(default_factory=list)


@dataclass
class ReadWrite:
    """A key written with a new value; the version is set only for updates."""

    key: bytes = b""
    value: bytes = b""
    version: int | None = None


@dataclass
class TxNamespace:
    """The reads and writes of a transaction within one namespace."""

    ns_id: str = ""
    ns_version: int = 0
    read_writes: list[ReadWrite] = field(default_factory=list)

    def asn1_marshal(self, tx_id: str) -> bytes:
        """Return the DER encoding of the namespace bound to a transaction id, as signed."""
        entries = []
        for rw in self.read_writes:
            parts = [_der(0x04, rw.key), _der(0x04, rw.value)]
            if rw.version is not None:
                parts.append(_der_int(rw.version))
            entries.append(_der_seq(*parts))
        return _der_seq(
            _der(0x0C, tx_id.encode("utf-8")),
            _der(0x0C, self.ns_id.encode("utf-8")),
            _der_int(self.ns_version),
            _der_seq(*entries),
        )


@dataclass
class Tx:
    """A transaction: its namespaces and, per namespace, the endorsements gathered."""

    namespaces: list[TxNamespace] = field(default_factory=list)
    endorsements: list[Endorsements | None] = field(default_factory=list)

    def clone(self) -> Tx:
        """Return a deep copy."""
        return copy.deepcopy(self)


@dataclass
class ThresholdRule:
    """A policy satisfied by a signature under one public key."""

    scheme: str = ""
    public_key: bytes = b""

    def _encode(self) -> bytes:
        out = _bytes_field(1, self.scheme.encode("utf-8")) if self.scheme else b""
        return out + (_bytes_field(2, self.public_key) if self.public_key else b"")


@dataclass
class NamespacePolicy:
    """The endorsement policy of a namespace: a threshold rule or an MSP rule."""

    threshold_rule: ThresholdRule | None = None
    msp_rule: bytes | None = None

    def serialize(self) -> bytes:
        """Return the protobuf wire encoding."""
        if self.threshold_rule is not None:
            return _bytes_field(1, self.threshold_rule._encode())
        if self.msp_rule is not None:
            return _bytes_field(2, self.msp_rule)
        return b""