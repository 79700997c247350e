"""
Best-effort side effects (SMS, alerts, in-app notifications).

dispatch() defers the call until the surrounding transaction commits and
then runs it on a small thread pool. A failing task is logged once and
never retried; it can never fail the request that scheduled it.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from django.conf import settings
from django.db import close_old_connections, transaction

logger = logging.getLogger(__name__)

_executor = None
_executor_lock = threading.Lock()


def _get_executor():
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=settings.SIDE_EFFECTS.get('MAX_WORKERS', 4),
                thread_name_prefix='side-effect',
            )
    return _executor


def _task_name(fn):
    return f"{getattr(fn, '__module__', '?')}.{getattr(fn, '__qualname__', repr(fn))}"


def run_task(fn, *args, **kwargs):
    """Run fn, logging (not raising) any failure. Returns fn's result or None."""
    try:
        return fn(*args, **kwargs)
    except Exception as e:
        logger.error(f"Side effect {_task_name(fn)} failed: {str(e)}", exc_info=True)
        return None


def _run_in_worker(fn, args, kwargs):
    close_old_connections()
    try:
        run_task(fn, *args, **kwargs)
    finally:
        close_old_connections()


def _submit(fn, args, kwargs):
    if settings.SIDE_EFFECTS.get('ASYNC', True):
        _get_executor().submit(_run_in_worker, fn, args, kwargs)
    else:
        run_task(fn, *args, **kwargs)


def dispatch(fn, *args, **kwargs):
    """Schedule fn(*args, **kwargs) to run after the current transaction commits"""
    logger.debug(f"Scheduling side effect {_task_name(fn)}")
    transaction.on_commit(lambda: _submit(fn, args, kwargs))
