"""Transactions that create or update namespace policies."""

from __future__ import annotations

from fxconfig.txmodel import NamespacePolicy, ReadWrite, Tx, TxNamespace

META_NAMESPACE_ID = "_meta"


def create_namespaces_tx(ns_policy: NamespacePolicy, ns_id: str, ns_version: int) -> Tx:
    """Build a transaction writing a namespace policy to the meta-namespace.

    A version of -1 creates the namespace; a version of 0 or more updates it.
    """
    rw = ReadWrite(
        key=ns_id.encode("utf-8"),
        value=ns_policy.serialize(),
        version=ns_version if ns_version >= 0 else None,
    )
    return Tx(namespaces=[TxNamespace(ns_id=META_NAMESPACE_ID, ns_version=0, read_writes=[rw])])