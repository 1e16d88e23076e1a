from pybreaker import CircuitBreaker
from sqlalchemy.exc import IntegrityError

from .exceptions import DomainError


def create_booking_breaker(fail_max: int = 3, reset_timeout: int = 60) -> CircuitBreaker:
    """
    Circuit breaker guarding booking persistence.

    Only unexpected storage failures count towards ``fail_max``; domain
    outcomes and constraint violations are normal answers, not outages.
    """
    return CircuitBreaker(
        fail_max=fail_max,
        reset_timeout=reset_timeout,
        exclude=[DomainError, IntegrityError],
        name="booking_write_breaker",
    )
