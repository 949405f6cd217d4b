"""Booking bounded context — racket stringing orders, pricing and redemption.

Handles the customer's cart of rackets, price computation over stacked
discount instruments, atomic redemption of finite resources (stock, package
credits, vouchers) and the order lifecycle (event-sourced).
"""

import structlog
from protean.domain import Domain

from booking.utils.logging import configure_logging

booking = Domain(name="booking")

configure_logging()

logger = structlog.get_logger(__name__)
