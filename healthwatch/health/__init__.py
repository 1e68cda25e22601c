"""Health subsystem — probe executor, result store, status cache, engine."""

from .cache import MemoryStatusCache, RedisStatusCache, StatusCache, create_cache
from .engine import HealthCheckEngine, build_engine
from .probe import ProbeOutcome, classify, evaluate, run_http_probe
from .store import ProbeResult, ResultStore
