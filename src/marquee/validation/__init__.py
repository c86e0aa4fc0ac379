"""Static validation of configuration documents."""

from .config_validator import ValidationReport, validate_document

__all__ = ["ValidationReport", "validate_document"]
