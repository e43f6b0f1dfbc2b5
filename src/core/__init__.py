"""
Core library: reusable, infrastructure-agnostic components.

Modules:
    resilience  - Retry with exponential backoff
    logging     - Structured JSON/console logging with context propagation
    errors      - Error classification and exception hierarchy
    utils       - JSON serialization and worker identifiers

Design Principles:
    - No dependencies on the storm feed domain
    - All modules are independently testable
    - Async-first where applicable
"""

from .types import ErrorCategory

__version__ = "0.1.0"

__all__ = [
    "ErrorCategory",
]
