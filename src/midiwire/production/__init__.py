"""
midiwire Production Module

Error handling, retry logic and logging setup shared by the MIDI input
controller and the command line interface.
"""

from .error_handler import ErrorContext, ErrorSeverity, ProductionErrorHandler
from .retry_manager import ProductionRetryManager, RetryConfig, RetryResult, RetryStrategy
from .logging import ProductionFormatter, setup_logging

__all__ = [
    'ErrorContext',
    'ErrorSeverity',
    'ProductionErrorHandler',
    'ProductionFormatter',
    'ProductionRetryManager',
    'RetryConfig',
    'RetryResult',
    'RetryStrategy',
    'setup_logging',
]
