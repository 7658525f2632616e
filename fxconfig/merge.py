"""Merging of separately endorsed copies of one transaction."""

from __future__ import annotations

from fxconfig.txmodel import EndorsementWithIdentity, Endorsements, Tx


class MergeError(ValueError):
    """Raised when transactions cannot be merged."""


def _msp_id(endorsement: EndorsementWithIdentity) -> str:
    return endorsement.identity.msp_id if endorsement.identity is not None else ""


def _validate(txs: list[Tx]) -> None:
    base = txs[0]
    for i, tx in enumerate(txs):
        if len(tx.namespaces) != len(base.namespaces):
            raise MergeError(f"transaction {i}: namespace count mismatch")
        for ns_idx, (expected, actual) in enumerate(zip(base.namespaces, tx.namespaces)):
            if expected != actual:
                raise MergeError(f"transaction {i}: namespace {ns_idx} content mismatch")
        for ns_idx, ns in enumerate(tx.endorsements):
            if ns is None or not ns.endorsements_with_identity:
                raise MergeError(
                    f"transaction {i}: namespace {ns_idx} requires at least one endorsement"
                )
        if len(tx.endorsements) > len(base.namespaces):
            raise MergeError(f"transaction {i}: endorsement count mismatch")


def _merge_endorsements(txs: list[Tx]) -> list[Endorsements]:
    count = len(txs[0].namespaces)
    merged = [Endorsements() for _ in range(count)]
    seen: list[set[str]] = [set() for _ in range(count)]
    for tx in txs:
        for ns_idx, ns in enumerate(tx.endorsements):
            for endorsement in ns.endorsements_with_identity:
                key = _msp_id(endorsement)
                if key in seen[ns_idx]:
                    continue
                seen[ns_idx].add(key)
                merged[ns_idx].endorsements_with_identity.append(endorsement)
    for ns in merged:
        ns.endorsements_with_identity.sort(key=_msp_id)
    return merged


def merge(txs: list[Tx]) -> Tx:
    """Combine endorsements of at least two identical transactions.

    Endorsements are deduplicated by MSP id and sorted by it.
    """
    if len(txs) < 2:
        raise MergeError("at least two transactions required for merge")
    _validate(txs)
    merged = txs[0].clone()
    merged.endorsements = _merge_endorsements(txs)
    return merged