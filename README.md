# fxconfig

A library of building blocks for administering Fabric-X namespaces: load and
validate the tool configuration, parse endorsement policy expressions, build
namespace create/update transactions, endorse them and merge endorsements
collected from several organisations.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Configuration

`fxconfig.loader.load(*options)` returns a `fxconfig.config.Config` with TLS
settings already resolved. Sources, lowest precedence first:

1. built-in defaults: `orderer.channel` is `mychannel`, the connection
   timeouts of orderer, queries and notifications and
   `notifications.waitingTimeout` are `30s`, `logging.level` is `error`;
2. the user file `~/.fxconfig/config.yaml`, then the project file
   `.fxconfig/config.yaml`, both optional. A file given with
   `with_config_file(path)` is read instead of both; it must exist and
   parse, or `ConfigLoadError` is raised;
3. environment variables named `FXCONFIG_` followed by the dotted key in
   upper case with dots replaced by underscores, for example
   `FXCONFIG_ORDERER_ADDRESS` or `FXCONFIG_ORDERER_CONNECTIONTIMEOUT`;
4. values given with `with_override(key, value)`, using dotted keys such as
   `"msp.localMspID"`.

Keys are matched case-insensitively. Durations are written like `45s`,
`1h30m` or `250ms` and are turned into `datetime.timedelta` values by
`fxconfig.loader.parse_duration`.

```python
from fxconfig.loader import load, with_config_file, with_override

cfg = load(
    with_config_file("config.yaml"),
    with_override("msp.localMspID", "Org1MSP"),
)
print(cfg.orderer.address, cfg.orderer.connection_timeout)
```

A top-level `tls:` section is inherited by the orderer, queries and
notifications services; values a service sets in its own `tls:` section win
(`Config.resolve_tls`, `TLSConfig.inherit_from`). After resolution every
`enabled` flag is explicit, `False` when never set.

```yaml
tls:
  enabled: true
  rootCerts:
    - /path/to/ca.pem

orderer:
  address: orderer.example.com:7050
  channel: mychannel

queries:
  address: query.example.com:7001

notifications:
  address: notify.example.com:7002
  waitingTimeout: 15s
```

### Validation

`MSPConfig`, `TLSConfig` and the service sections (`OrdererConfig`,
`QueriesConfig`, `NotificationsConfig`) each have a
`validate(validation_context)` method that raises `ConfigError`. It checks
that addresses have the form `host:port`, that connection timeouts are
non-zero, that the MSP id is not blank and its directory exists, and, when
TLS is enabled, that the root certificates exist and a client
certificate/key pair, if given, exists and matches.

`fxconfig.validation.new_validation_context()` supplies the checkers:
`PolicyDSLChecker`, `OSFileChecker` and `OSDirectoryChecker`. The path
checkers reject empty paths and paths containing `..`, and raise
`ValidationError`.

`fxconfig.provider.Provider(factory, cfg, validation_context)` validates a
section and builds a service from it on the first `get()`, once, in a
thread-safe way; the instance or the error is cached for later calls.

## Policies

`fxconfig.policydsl.from_string` parses expressions built from `AND`, `OR`
and `OutOf(n, ...)` over principals such as `'Org1MSP.member'` (roles
`member`, `admin`, `client`, `peer`, `orderer`) and raises
`PolicyParseError` on bad input. The result's `serialize()` gives its
protobuf encoding.

`fxconfig.policy` builds namespace policies:

```python
from fxconfig.policy import create_msp_policy, create_threshold_policy

msp_policy = create_msp_policy("OutOf(2, 'Org1MSP.member', 'Org2MSP.member', 'Org3MSP.member')")
threshold_policy = create_threshold_policy("signer-cert.pem")
```

`create_threshold_policy` takes the first ECDSA public key found in the PEM
file, either as a public key or inside a certificate, and raises
`PolicyError` if there is none.

## Transactions

```python
from fxconfig.namespace import create_namespaces_tx
from fxconfig.endorse import endorse, generate_tx_id
from fxconfig.merge import merge

tx = create_namespaces_tx(msp_policy, "my_namespace", -1)   # -1 creates, >= 0 updates
tx_id = generate_tx_id()

endorsed_by_org1 = endorse(org1_signer, tx_id, tx)
endorsed_by_org2 = endorse(org2_signer, tx_id, tx)
combined = merge([endorsed_by_org1, endorsed_by_org2])
```

- `create_namespaces_tx` writes the serialized policy under the namespace
  name into the `_meta` namespace; the version is recorded only for updates.
  `fxconfig.version.validate_version` rejects versions below -1.
- `endorse` returns a copy of the transaction with one signature per
  namespace added. A signer is any object with `sign(message)` and
  `serialize()` (see `fxconfig.endorse.SigningIdentity`).
- `generate_tx_id` returns the hex SHA-256 of a 24-byte random nonce.
- `merge` needs at least two transactions with identical namespaces, each
  carrying endorsements; it raises `MergeError` otherwise. Endorsements are
  de-duplicated by MSP id and sorted by MSP id.

The transaction types live in `fxconfig.txmodel` (`Tx`, `TxNamespace`,
`ReadWrite`, `Endorsements`, `EndorsementWithIdentity`, `Identity`,
`NamespacePolicy`, `ThresholdRule`).

## What this package does not do

It has no command-line tool. It does not talk to the ordering, query or
notification services, so it cannot submit transactions, wait for their
status or list installed namespaces. It does not read signing identities
from an MSP directory or hold private keys: signers must be supplied by the
caller.