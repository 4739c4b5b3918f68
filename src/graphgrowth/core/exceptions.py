"""Custom exceptions for the growth pipeline."""

import time
from typing import Optional, Dict, Any, List
from pathlib import Path


class PipelineError(Exception):
    """Base exception for pipeline errors."""

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        self.stage = stage
        self.timestamp = time.time()
        super().__init__(message)


class ValidationError(PipelineError):
    """Structural input is inconsistent."""

    def __init__(self, message: str, errors: Optional[List[str]] = None,
                 stage: Optional[str] = None) -> None:
        self.errors = errors or []
        super().__init__(message, stage)

    def get_error_details(self) -> Dict[str, Any]:
        """Get structured error details for logging."""
        return {
            "message": str(self),
            "errors": self.errors,
            "timestamp": self.timestamp,
            "stage": self.stage
        }


class ConfigurationError(PipelineError):
    """Configuration or threshold error."""

    def __init__(self, message: str, config_path: Optional[Path] = None,
                 stage: Optional[str] = None) -> None:
        self.config_path = config_path
        super().__init__(message, stage)


class NumericalError(PipelineError):
    """A probability recurrence left its valid range."""

    def __init__(self, message: str, sample_size: Optional[int] = None,
                 stage: Optional[str] = None) -> None:
        self.sample_size = sample_size
        super().__init__(message, stage)
