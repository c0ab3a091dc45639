# shopnexus

Building blocks for the backend of a shop service. It is a library with no
command of its own.

## Modules

- `shopnexus.config` loads the application configuration into a `Config`
  dataclass, which holds `Log`, `App` (with `JWT`), `Postgres` and `Redis`
  sections.
  - `load_config(environ=None, base_dir=None)` first reads
    `config/config.default.yml`. It then merges one further YAML file over it.
    That file is the one named by `CONFIG_FILE` or `APP_CONFIG_FILE` if either
    is set. Otherwise it is the first that exists of
    `config/config.<APP_ENV>.yml`, `configs/config.<APP_ENV>.yml`,
    `config/config.production.yml` and `config/config.dev.yml`. `APP_ENV`
    defaults to `development`, and the two environment-specific paths are
    skipped when it is `production`.
  - After the merge, `APP_<SECTION>_<KEY>` environment variables replace values
    already present (`apply_env_overrides`). The result is decoded
    (`config_from_mapping`) and checked (`validate_config`). A failed check
    raises `ConfigError` listing every failing field. For example, `env` must
    be one of `dev`, `staging` or `production`.
  - `get_config()` loads the configuration once and returns that shared
    instance. `reload_config()` loads it again and replaces it.
  - `Config` has three helpers: `is_development()`, `is_production()` and
    `is_test()`.
- `shopnexus.pubsub` is an in-process publish/subscribe client.
  - `MemoryClient.subscribe(topic, handler)` returns a `Subscription`, and
    `cancel()` detaches it.
  - `await MemoryClient.publish(topic, value)` encodes the value and starts
    one asyncio task per active subscriber. It does not wait for them.
    Handlers may be plain functions (run in a thread) or coroutine functions.
    They receive a `MessageDecoder` with `decode()` and `raw()`.
  - Encoding and decoding default to JSON. `PubSubConfig` sets other codecs
    and a per-handler `timeout`. Handler errors and timeouts are logged, not
    raised.
  - `close()` ends every subscription. A closed client raises
    `ClientClosedError`.
- `shopnexus.dbrouter` decides where each statement goes.
  - `is_write_operation(query)` strips `--` and `/* */` comments. It treats
    statements that start with `insert`, `update`, `delete`, `create`, `drop`,
    `alter`, `truncate`, `replace`, `merge`, `upsert`, `call` or `exec` as
    writes. A `with` query that contains one of the data-changing words also
    counts as a write.
  - `DBRouter(read_pool, write_pool)` sends `execute`, `query` and `query_row`
    to the matching pool. It always uses the write pool for `copy_from` and
    `begin`.
- `shopnexus.tracer` logs finished queries.
  - `QueryLogger.trace_query_start(sql, args)` returns a `TraceData`.
  - `trace_query_end(trace)` logs and returns a line with the query name, its
    arguments and the elapsed milliseconds.
  - `query_name(sql)` gives the first line of the SQL without a leading
    `-- name: `.
- `shopnexus.pgconn` has `get_conn_str(PoolOptions)`. It returns the URL when
  one is set, otherwise a `host=... port=... user=... password=... dbname=...
  sslmode=disable` string.
- `shopnexus.rediscache` is a small key/value cache over Redis.
  - `connect(RedisOptions)` connects to the first address in `addr`
    (`host:port`), selects `db` and pings the server.
  - `RedisCache` offers `set(key, value, expiration=None)`, `get(key)` (which
    returns `""` for a missing key), `delete(key)` and `exists(key)`.
  - Failures raise `RedisCacheError`.
- `shopnexus.vnpay` handles VNPAY payments.
  - `VNPayClient.create_order(CreateOrderParams, now=None)` builds a signed
    sandbox payment URL. The amount is multiplied by 100, and the link expires
    30 minutes after `now`.
  - `verify_payment(ipn)` checks the HMAC-SHA512 `vnp_SecureHash` of an IPN
    mapping. It raises `PaymentVerificationError` when the hash is missing or
    does not match.
  - The helpers are `sign`, `build_sorted_query` and `format_time`.

## What it does not do

- There is no message broker. Pub/sub works only inside one process.
- No database driver or connection pool is included. `DBRouter` routes to
  pool objects you supply, and `pgconn` only builds connection strings.
- `connect` uses only the first Redis address given.
- The VNPAY client only builds URLs and checks signatures. It makes no HTTP
  requests.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Example

```python
from datetime import datetime

from shopnexus.vnpay import CreateOrderParams, VNPayClient

client = VNPayClient(tmn_code="DEMO0001", hash_secret="secret")
url = client.create_order(
    CreateOrderParams(payment_id=1, amount=50000, info="Order 1",
                      return_url="http://localhost/return"),
    now=datetime(2024, 1, 1, 12, 0, 0),
)
```