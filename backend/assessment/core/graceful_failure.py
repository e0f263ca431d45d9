"""
Graceful failure utilities.

Scoring must always produce a result for a completed session. Post-processing
steps that only enrich that result (confidence intervals, response
consistency analysis) are wrapped so an unexpected error is logged and the
result is returned without the enrichment:

    from assessment.core.graceful_failure import graceful_failure

    with graceful_failure("enrich confidence intervals", logger):
        scores = ci_calculator.enrich_with_confidence_intervals(scores)

    # With custom log level and traceback:
    with graceful_failure(
        "analyze response consistency",
        logger,
        log_level=logging.ERROR,
        exc_info=True,
        context={"session_id": session.id},
    ):
        consistency = analyzer.analyze(answers)

Caller contract violations (for example a wrong blueprint type passed to an
assembler) are not wrapped; they propagate to the caller.
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional


@contextmanager
def graceful_failure(
    operation_name: str,
    logger: logging.Logger,
    *,
    log_level: int = logging.WARNING,
    exc_info: bool = False,
    context: Optional[dict[str, Any]] = None,
) -> Generator[None, None, None]:
    """Context manager for non-critical operations that should not block execution.

    Args:
        operation_name: Human-readable name of the operation for logging
            (e.g., "enrich confidence intervals").
        logger: The logger instance to use for logging errors.
        log_level: Logging level for error messages. Defaults to WARNING.
        exc_info: Whether to include exception traceback in log. Defaults to False.
        context: Optional dictionary of additional context to include in log message
            (e.g., {"session_id": "..."}).

    Yields:
        None - the context manager is used for its side effects only.
    """
    try:
        yield
    except Exception as e:
        if context:
            context_str = ", ".join(f"{k}={v}" for k, v in context.items())
            message = f"Failed to {operation_name} ({context_str}): {e}"
        else:
            message = f"Failed to {operation_name}: {e}"

        logger.log(log_level, message, exc_info=exc_info)
