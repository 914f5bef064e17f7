"""Per-opportunity locks for the status-transition critical section.

Marking an opportunity won and writing its commission snapshot must not
interleave with another transition of the same opportunity.  Inside one
process an ``asyncio.Lock`` per opportunity serialises them; across
processes the conditional status UPDATE and the unique snapshot
constraint do the job.
"""

import asyncio
from weakref import WeakValueDictionary

_locks: "WeakValueDictionary[int, asyncio.Lock]" = WeakValueDictionary()


def opportunity_lock(opportunity_id: int) -> asyncio.Lock:
    """Return the lock guarding *opportunity_id*.

    Locks are dropped once nobody holds a reference, so the registry
    does not grow with every opportunity ever touched.
    """
    lock = _locks.get(opportunity_id)
    if lock is None:
        lock = asyncio.Lock()
        _locks[opportunity_id] = lock
    return lock

