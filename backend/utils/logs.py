import functools
import logging
import time
import warnings
from typing import Callable

from cachetools.func import ttl_cache

logger = logging.getLogger("jammer.performance")


def time_it(func):
    """Decorator to measure execution time of async functions"""

    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            elapsed = (time.perf_counter() - start_time) * 1000
            logger.debug(f"{func.__name__} completed in {humanize_milliseconds(elapsed)}")

    return async_wrapper


def setup_logs():
    warnings.simplefilter("default")
    logging.getLogger("jammer").setLevel(logging.DEBUG)
    logging.basicConfig()


def humanize_milliseconds(elapsed):
    """Write a millisecond amount in a human-readable way.
    >>> humanize_milliseconds(0)
    '0 ms.'
    >>> humanize_milliseconds(11.4)
    '11 ms.'
    >>> humanize_milliseconds(30*1000+10)
    '30.0"'
    >>> humanize_milliseconds(65*1000)
    '1\\'5"'
    """
    elapsed = int(elapsed)
    if elapsed <= 5000:
        return f"{elapsed:,} ms."
    elapsed /= 1000.0
    if elapsed >= 60:
        minutes = int(elapsed / 60)
        seconds = int(elapsed - minutes * 60)
        return f"{minutes}'{seconds}\""
    if elapsed == int(elapsed):
        return f'{int(elapsed)}"'
    return f'{elapsed:.1f}"'


loggers: dict[int, Callable] = {}


def ratelimited_log(delay: int, logger_method: Callable, msg: str):
    """Log `msg` with `logger_method` at most once every `delay` seconds"""
    if delay not in loggers:

        @ttl_cache(ttl=delay)
        def call(logger_method, message):
            logger_method(message)

        loggers[delay] = call

    return loggers[delay](logger_method, msg)
