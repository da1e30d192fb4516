"""
Process-wide interrupt flag.

The first SIGINT asks the training loop to stop after the current class
step; a second one exits immediately.
"""

import signal
import sys
import threading
from typing import Optional


_interrupted = threading.Event()
_previous_handler = None


def request_interrupt() -> None:
    _interrupted.set()


def interrupt_requested() -> bool:
    return _interrupted.is_set()


def clear_interrupt() -> None:
    _interrupted.clear()


def _handle_sigint(signum, frame) -> None:
    if _interrupted.is_set():
        print("\nForced exit.", file=sys.stderr, flush=True)
        raise SystemExit(1)
    _interrupted.set()
    print("\nInterrupt received: stopping after the current step "
          "(press Ctrl+C again to exit immediately).", file=sys.stderr, flush=True)


def install_signal_handler() -> None:
    """Route SIGINT to the interrupt flag (main thread only)."""
    global _previous_handler
    clear_interrupt()
    _previous_handler = signal.signal(signal.SIGINT, _handle_sigint)


def restore_signal_handler() -> Optional[object]:
    """Put back the handler that was active before install_signal_handler."""
    global _previous_handler
    if _previous_handler is None:
        return None
    handler = _previous_handler
    signal.signal(signal.SIGINT, handler)
    _previous_handler = None
    return handler
