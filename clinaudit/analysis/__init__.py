import importlib
import logging
from collections.abc import Callable
from typing import Any

log = logging.getLogger(__name__)

_REGISTRY: dict[str, Callable] = {}

# Transform modules, imported at bottom to auto-register
_MODULES = [
    "clinaudit.analysis.job_results",
    "clinaudit.analysis.dashboard",
]


def register(name: str):
    """Decorator to register a backend payload transform."""

    def decorator(fn):
        _REGISTRY[name] = fn
        return fn

    return decorator


def available() -> list[str]:
    return sorted(_REGISTRY)


def run_analysis(analysis_type: str, payload: Any, **options: Any):
    """Dispatch a raw backend payload to the registered transform."""
    fn = _REGISTRY.get(analysis_type)
    if not fn:
        raise ValueError(
            f"Unknown analysis type: {analysis_type}. "
            f"Available: {', '.join(available())}"
        )
    log.info("Running transform: %s with options %s", analysis_type, options)
    return fn(payload if isinstance(payload, dict) else {}, **options)


# Auto-import modules to trigger @register decorators
for _mod in _MODULES:
    importlib.import_module(_mod)
