from .logs import setup_logs, time_it, ratelimited_log

__all__ = ["setup_logs", "time_it", "ratelimited_log"]
