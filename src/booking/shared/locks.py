"""Per-aggregate serialisation for work that loads, decides and persists.

Work on the same aggregate runs one call at a time in this process. Locks
are striped over a fixed pool, so the pool never grows with the number of
orders and carts seen.
"""

import threading
from contextlib import contextmanager

_STRIPES = 64
_stripes = [threading.RLock() for _ in range(_STRIPES)]


@contextmanager
def aggregate_lock(kind: str, identifier):
    """Hold off every other caller locking the same ``kind`` and ``identifier``."""
    lock = _stripes[hash(f"{kind}:{identifier}") % _STRIPES]
    with lock:
        yield
