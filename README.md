# refinery

Core pieces of a trace-aware sampling proxy. The package provides a bounded
trace cache and cluster peer discovery, either static or backed by Redis. It
also provides a small logging interface and sampler configuration with
validation.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

### `refinery.config`

`MockConfig` is a dataclass configuration that answers with the values it was
built with, such as `peers`, `peer_management_type`, `redis_host`,
`peer_listen_addr` and `logger_type`. Its getters have names like
`get_peers()` and `get_redis_host()`. Each value that can fail has a matching
`*_error` field. When that field is set, the getter raises it. Some examples
are `peers_error` and `redis_host_error`.

`register_reload_callback(cb)` stores callbacks, and `reload_config()` runs
them. `get_other_config(name, target)` fills a dataclass, an object or a dict
from the JSON text in `other_config`. Keys are matched case-insensitively and
underscores are ignored. The method returns the filled `target`.

`InMemoryCollectorCacheCapacity` holds `cache_capacity` and `max_alloc`.

### `refinery.sampler_config`

This module holds dataclasses for sampler settings:

- `DeterministicSamplerConfig`
- `DynamicSamplerConfig`
- `EMADynamicSamplerConfig`
- `TotalThroughputSamplerConfig`
- `RulesBasedSamplerConfig`, together with `RulesBasedSamplerRule`,
  `RulesBasedSamplerCondition` and `RulesBasedDownstreamSampler`

`validate()` raises `ConfigValidationError`, a `ValueError`, when a rule is
broken:

- A sample rate or goal below 1.
- An EMA `weight` outside the open range (0, 1).
- A missing `field_list`.
- An empty `add_sample_rate_key_to_trace_field` while
  `add_sample_rate_key_to_trace` is set.
- A rule `scope` other than `"span"` or `"trace"`. A rule also validates its
  downstream samplers.

### `refinery.logger`

`Logger` hands out entries through `debug()`, `info()` and `error()`. An
entry chains `with_field`, `with_string` and `with_fields`, and is written
with `logf(fmt, *args)`.

The module has three loggers:

- `StdlibLogger` writes to a stream, stdout by default, through the `logging`
  module. Call `start()` before asking it for entries. Its level defaults to
  info.
- `NullLogger` discards everything.
- `MockLogger` keeps each written `MockLoggerEvent` in `events`.

`parse_level(name)` turns a level name into a `Level`. It accepts `debug`,
`info`, `warn`, `warning`, `error` and `panic`, and raises `ValueError` for
anything else.

`get_logger_implementation(config)` returns a `StdlibLogger` when the
configuration's logger type is `"stdlib"` or `"logrus"`. For any other type it
raises `ValueError`.

### `refinery.cache`

`InMemCache(capacity, metrics, logger)` is a ring buffer of traces. It evicts
traces in insertion order. A capacity of 0 means 10000.

Traces need `trace_id`, `sent` and `send_by` attributes. The metrics object
needs `register`, `increment`, `gauge` and `histogram`.

The cache's methods are:

- `set(trace)` stores a trace. It returns the trace it pushed out if that
  trace was never sent, and counts such a trace as a buffer overrun.
- `get(trace_id)` returns the stored trace with that id.
- `get_all()` returns all stored traces in ring order.
- `take_expired_traces(now)` removes and returns the traces whose `send_by`
  is before `now`.

`cache_size` is the capacity, and `len(cache)` is the number of stored traces.

### `refinery.redimem`

`RedisMembership(prefix, client, repeat_count)` keeps group membership as
expiring Redis keys. The methods are:

- `register(name, timeout)` adds a member for a number of whole seconds.
- `get_members()` scans for members several times (2 by default) and returns
  the sorted union.

`MembershipError` is raised when no client is set, and for scan problems. Scan
problems are logged rather than raised.

### `refinery.peer`

`new_peers(config)` returns one of two peer sets:

- `FilePeers` when the peer management type is `"file"`. It reads the peer
  list from the configuration.
- `RedisPeers` when the type is `"redis"`. It registers this host in Redis and
  re-registers it in a background thread. A second thread watches the shared
  list and runs each registered callback in its own thread whenever the list
  changes. `update_peer_list_once()` refreshes the list on demand, and
  `stop()` ends the background threads.

For any other type, `new_peers` raises `PeerError`.

`public_addr(config)` builds the `http://host:port` address that this host
announces. It uses the hostname by default. When an interface name is
configured, it uses that interface's address. A configured Redis identifier
takes precedence over both.

`build_connection_kwargs(config)` returns the Redis client options: timeouts,
database, username, password and TLS.

## Example

```python
from dataclasses import dataclass
from datetime import datetime, timedelta

from refinery.cache import InMemCache
from refinery.config import MockConfig
from refinery.logger import NullLogger
from refinery.peer import new_peers

config = MockConfig(peer_management_type="file", peers=["http://peer-a:8081"])
peers = new_peers(config)
print(peers.get_peers())  # ['http://peer-a:8081']


class Metrics:
    def register(self, name, metric_type): pass
    def increment(self, name): pass
    def gauge(self, name, value): pass
    def histogram(self, name, value): pass


@dataclass
class Trace:
    trace_id: str
    send_by: datetime
    sent: bool = False


cache = InMemCache(100, Metrics(), NullLogger())
cache.set(Trace("abc123", datetime.now() - timedelta(minutes=1)))
expired = cache.take_expired_traces(datetime.now())
print([t.trace_id for t in expired])  # ['abc123']
```

## What this package does not do

This package contains building blocks only. It has no command to run and no
HTTP or gRPC listener. It does not collect spans into traces, make sampling
decisions, or send events anywhere. It also does not load configuration from
files: configuration is supplied through `MockConfig` or any object with the
same getters. There are no metrics back ends, so callers provide their own
metrics object.