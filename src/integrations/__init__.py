"""
Integrations Module

Report exchange with external systems.
"""

from .external_api import (
    APIHealth,
    AuthMode,
    BatchCallItem,
    BatchCallResult,
    ExternalAPIConfig,
    ExternalAPIManager,
    ExternalCallResult,
    HealthStatus,
    PayloadFormat,
    parse_csv,
    parse_xml,
    rows_to_csv,
    rows_to_xml,
)

__all__ = [
    "APIHealth",
    "AuthMode",
    "BatchCallItem",
    "BatchCallResult",
    "ExternalAPIConfig",
    "ExternalAPIManager",
    "ExternalCallResult",
    "HealthStatus",
    "PayloadFormat",
    "parse_csv",
    "parse_xml",
    "rows_to_csv",
    "rows_to_xml",
]
