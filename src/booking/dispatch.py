"""Synchronous command dispatch for the booking context.

Order and cart handlers each load their aggregate, check its state and
persist new events in one unit of work. ``process`` runs commands aimed at
the same order (or cart) one after another, so each handler decides from
the state the previous one committed.
"""

from protean.utils.globals import current_domain

from booking.shared.locks import aggregate_lock


def process(command):
    """Process ``command`` and return the handler's result."""
    kind, identifier = _target(command)
    if identifier is None:
        return current_domain.process(command, asynchronous=False)

    with aggregate_lock(kind, identifier):
        return current_domain.process(command, asynchronous=False)


def _target(command):
    for kind in ("order", "cart"):
        identifier = getattr(command, f"{kind}_id", None)
        if identifier is not None:
            return kind, str(identifier)
    return None, None
