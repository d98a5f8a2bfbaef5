import time
import functools
import inspect
import logging

logger = logging.getLogger(__name__)


def profile_stage(stage_name: str, slow_ms: float = 5000.0):
    """Decorator logging how long a stage takes; slow stages are logged as warnings.

    Works with async or sync callables. Timing is logged even when the call raises.
    """
    def _report(t0: float) -> None:
        elapsed = (time.perf_counter() - t0) * 1000
        if elapsed >= slow_ms:
            logger.warning(f"[PERF] {stage_name}: {elapsed:.1f} ms (slow)")
        else:
            logger.debug(f"[PERF] {stage_name}: {elapsed:.1f} ms")

    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def wrapper(*args, **kwargs):
                t0 = time.perf_counter()
                try:
                    return await func(*args, **kwargs)
                finally:
                    _report(t0)
            return wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            t0 = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                _report(t0)
        return wrapper
    return decorator
