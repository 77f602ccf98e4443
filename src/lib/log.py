"""
Centralized logging using Loguru with engine-aware verbosity.

LOG() respects the verbosity of the EngineConfig currently connected to the
logging context, so the rewriter, callout transformer and plugin loader can
emit trace output without passing the configuration around. WARN() is not
gated: it reports author-facing problems (unknown directives, skipped
plugins) that must always be visible.

Usage:
    from pagedmd.lib.log import LOG, WARN, state_connectToLogger

    # When an engine starts working:
    state_connectToLogger(config)

    # Anywhere in that context:
    LOG("Rewriting 120 tokens", level=2)
    WARN('Unknown directive "@pgae". Did you mean "@page"?')
"""

from loguru import logger
from typing import Any, Optional
from contextvars import ContextVar
import sys

# Context variable holding the configuration of the engine doing the work
_engine_state: ContextVar[Optional[Any]] = ContextVar('engine_state', default=None)

logger_format = (
    "<green>{time:HH:mm:ss}</green> │ "
    "<level>{level: <7}</level> │ "
    "<cyan>{function: <20}</cyan> @ "
    "<cyan>{line: <4}</cyan> ║ "
    "<level>{message}</level>"
)

logger.remove()  # Remove default handler
logger.add(sys.stderr, format=logger_format, level="DEBUG")


def state_connectToLogger(state: Any) -> None:
    """
    Connect an engine configuration (or anything with a verbosity) to the
    logging context.

    Args:
        state: object with a ``verbosity`` attribute, typically an EngineConfig
    """
    _engine_state.set(state)


def LOG(message: str, level: int = 1, **kwargs: Any) -> None:
    """
    Log message if the connected state's verbosity allows.

    Args:
        message: Log message to display
        level: Minimum verbosity level required (1=normal, 2=verbose, 3=debug)
        **kwargs: Additional loguru metadata

    Example:
        LOG("Loaded 3 plugins", level=1)
        LOG("Callout 'warning' spliced at token 14", level=3)
    """
    state = _engine_state.get()

    if state and hasattr(state, 'verbosity') and state.verbosity >= level:
        logger.opt(depth=1).debug(message, **kwargs)


def WARN(message: str, **kwargs: Any) -> None:
    """Always-on warning for non-fatal problems in author input or plugins."""
    logger.opt(depth=1).warning(message, **kwargs)
