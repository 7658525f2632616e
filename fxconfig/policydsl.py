"""Parser for the signature policy language: AND, OR and OutOf gates over MSP principals."""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass
from typing import Union

_PRINCIPAL = re.compile(r"^([A-Za-z0-9.\-]+)\.(member|admin|client|peer|orderer)$")
_ROLE_CODES = {"member": 0, "admin": 1, "client": 2, "peer": 3, "orderer": 4}
_GATES = {
    **dict.fromkeys(("AND", "and"), "and"),
    **dict.fromkeys(("OR", "or"), "or"),
    **dict.fromkeys(("OutOf", "outof", "OUTOF"), "outof"),
}
_LEXEME = re.compile(
    r"""\s*(?:
        (?P<number>\d+(?:\.\d+)?)
      | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
      | (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
      | (?P<punct>[(),-])
    )""",
    re.VERBOSE,
)


class PolicyParseError(ValueError):
    """Raised when a policy expression cannot be parsed."""


def _varint(value: int) -> bytes:
    value &= (1 << 64) - 1
    out = bytearray()
    while value > 0x7F:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def _int_field(number: int, value: int) -> bytes:
    return _varint(number << 3) + _varint(value)


def _bytes_field(number: int, payload: bytes) -> bytes:
    return _varint((number << 3) | 2) + _varint(len(payload)) + payload


@dataclass(frozen=True)
class MSPPrincipal:
    """A role-based principal: an MSP identifier together with a role name."""

    msp_id: str
    role: str

    def _encode(self) -> bytes:
        msp_role = _bytes_field(1, self.msp_id.encode()) if self.msp_id else b""
        code = _ROLE_CODES[self.role]
        if code:
            msp_role += _int_field(2, code)
        # classification ROLE is 0 and therefore omitted
        return _bytes_field(2, msp_role)


@dataclass(frozen=True)
class SignaturePolicy:
    """Either a reference to one identity or an n-out-of gate over sub-rules."""

    signed_by: int | None = None
    n: int = 0
    rules: tuple[SignaturePolicy, ...] = ()

    def _encode(self) -> bytes:
        if self.signed_by is not None:
            return _int_field(1, self.signed_by)
        body = _int_field(1, self.n) if self.n else b""
        body += b"".join(_bytes_field(2, rule._encode()) for rule in self.rules)
        return _bytes_field(2, body)


@dataclass(frozen=True)
class SignaturePolicyEnvelope:
    """A parsed policy: the rule tree and the identities it refers to by index."""

    rule: SignaturePolicy
    identities: tuple[MSPPrincipal, ...]
    version: int = 0

    def serialize(self) -> bytes:
        """Return the protobuf wire encoding of the envelope."""
        out = _int_field(1, self.version) if self.version else b""
        out += _bytes_field(2, self.rule._encode())
        return out + b"".join(_bytes_field(3, p._encode()) for p in self.identities)


@dataclass(frozen=True)
class _Gate:
    kind: str
    args: tuple


_Node = Union[_Gate, float, str]


def _scan(expression: str) -> deque:
    lexemes: deque = deque()
    pos, end = 0, len(expression.rstrip())
    while pos < end:
        match = _LEXEME.match(expression, pos)
        if match is None:
            char = expression[pos:].lstrip()[:1]
            raise PolicyParseError(f"unexpected character '{char}' in policy string")
        lexemes.append((match.lastgroup, match.group(match.lastgroup)))
        pos = match.end()
    return lexemes


def _take(lexemes: deque) -> tuple[str, str]:
    if not lexemes:
        raise PolicyParseError("unexpected end of policy string")
    return lexemes.popleft()


def _next_is(lexemes: deque, text: str) -> bool:
    return bool(lexemes) and lexemes[0] == ("punct", text)


def _expression(lexemes: deque) -> _Node:
    kind, text = _take(lexemes)
    if kind == "number":
        return float(text)
    if kind == "string":
        return re.sub(r"\\(.)", r"\1", text[1:-1])
    if kind == "punct" and text == "-":
        kind, text = _take(lexemes)
        if kind == "number":
            return -float(text)
    elif kind == "name":
        if text in _GATES and _next_is(lexemes, "("):
            lexemes.popleft()
            return _Gate(_GATES[text], _arguments(lexemes))
        raise PolicyParseError(f"unrecognized token '{text}' in policy string")
    raise PolicyParseError(f"unexpected token '{text}' in policy string")


def _arguments(lexemes: deque) -> tuple:
    if _next_is(lexemes, ")"):
        lexemes.popleft()
        return ()
    args = []
    while True:
        args.append(_expression(lexemes))
        kind, text = _take(lexemes)
        if kind == "punct" and text == ")":
            return tuple(args)
        if not (kind == "punct" and text == ","):
            raise PolicyParseError(f"unexpected token '{text}' in policy string")


def _threshold(node: _Node) -> int:
    if isinstance(node, float):
        return int(node)
    if isinstance(node, str):
        try:
            return int(node.strip())
        except ValueError:
            raise PolicyParseError(f"unrecognized token '{node}' in policy string") from None
    raise PolicyParseError("unrecognized type, expected a number")


def _operands(gate: _Gate) -> tuple[int, tuple]:
    args = gate.args
    given = len(args) if gate.kind == "outof" else len(args) + 1
    if given < 2:
        raise PolicyParseError(f"expected at least two arguments to NOutOf. Given {given}")
    if gate.kind == "outof":
        threshold, operands = _threshold(args[0]), args[1:]
    else:
        threshold, operands = (len(args) if gate.kind == "and" else 1), args
    if any(isinstance(operand, float) for operand in operands):
        raise PolicyParseError("unexpected numeric argument in policy gate")
    return threshold, operands


def _principal(text: str) -> MSPPrincipal:
    match = _PRINCIPAL.match(text)
    if match is None:
        raise PolicyParseError(f"error parsing principal {text}")
    return MSPPrincipal(msp_id=match.group(1), role=match.group(2))


def _build(gate: _Gate, identities: list[MSPPrincipal]) -> SignaturePolicy:
    threshold, operands = _operands(gate)
    if threshold < 0 or threshold > len(operands) + 1:
        raise PolicyParseError(f"invalid t-out-of-n predicate, t {threshold}, n {len(operands)}")

    # nested gates claim identity indices before this gate's own principals
    built = [_build(op, identities) if isinstance(op, _Gate) else op for op in operands]

    def sign(item):
        if isinstance(item, SignaturePolicy):
            return item
        identities.append(_principal(item))
        return SignaturePolicy(signed_by=len(identities) - 1)

    return SignaturePolicy(n=threshold, rules=tuple(sign(item) for item in built))


def from_string(expression: str) -> SignaturePolicyEnvelope:
    """Parse a policy expression such as "AND('Org1MSP.member', 'Org2MSP.admin')"."""
    lexemes = _scan(expression)
    node = _expression(lexemes) if lexemes else None
    if lexemes or not isinstance(node, _Gate):
        raise PolicyParseError(f"invalid policy string '{expression}'")
    identities: list[MSPPrincipal] = []
    rule = _build(node, identities)
    return SignaturePolicyEnvelope(rule=rule, identities=tuple(identities))