"""Centralized logging configuration for the ensemble scoring engine.

This module provides thread-safe, idempotent logfire configuration so that
logfire is configured exactly once per process, whether the engine is embedded
in a batch job, a test session, or a long-running service.

Usage:
    # At application entry points:
    from suggestion_ensemble.core.logging import configure_logging
    configure_logging()

    # Then use logfire normally:
    import logfire
    logfire.info("Ensemble scored", category="causal_analysis")
"""

import sys
import threading

import logfire

_configured = False
_config_lock = threading.Lock()


def configure_logging(enable_console: bool = False, send_to_logfire: bool | None = None) -> None:
    """Configure logfire logging if not already configured.

    Args:
        enable_console: Whether to enable console logging output. Defaults to False.
        send_to_logfire: Forwarded to ``logfire.configure``. ``None`` keeps logfire's
            default of sending only when a token is present.

    Thread-safe implementation using double-checked locking pattern.
    """
    global _configured

    if _configured:
        return

    with _config_lock:
        if not _configured:
            options: dict = {"min_level": "debug"}
            if send_to_logfire is not None:
                options["send_to_logfire"] = send_to_logfire
            try:
                if enable_console:
                    logfire.configure(console=logfire.ConsoleOptions(), **options)
                else:
                    logfire.configure(console=False, **options)
                _configured = True
            except Exception as e:
                # logfire isn't usable yet, so stderr is the only channel left
                print(f"Failed to configure logfire: {e}", file=sys.stderr)


def is_configured() -> bool:
    """Check if logfire has been configured.

    Returns:
        bool: True if logfire has been configured, False otherwise.
    """
    return _configured
