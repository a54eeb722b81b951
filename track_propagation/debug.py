"""
Deferred propagation debug output.

Messages are built by a zero-argument callable that only runs when the
propagation was started with ``debug=True``.
"""
import logging
from typing import Callable

logger = logging.getLogger(__name__)


def debug_log(state, prefix: str, message: Callable[[], str]) -> None:
    """Append ``"   <prefix> | <message>"`` to ``state.debug_string``."""
    options = state.options
    if not options.debug:
        return
    line = f"   {prefix:>{options.debug_pfx_width}} | {message():>{options.debug_msg_width}}"
    state.debug_string += line + "\n"
    logger.debug(line)
