"""
Production Error Handler

Centralized error handling for the layers around the MIDI codec.
Records and logs failures with user-facing messages and solutions, and runs
registered recovery strategies. The codec itself never calls this: it raises,
and the transport or CLI decides what to do.
"""

import time
import traceback
import logging
from typing import Dict, Callable, Optional, Any, List, Tuple
from dataclasses import dataclass
from enum import Enum

from ..midi.errors import UnknownStatusError

log = logging.getLogger(__name__)

RecoveryStrategy = Callable[[Exception, Dict[str, Any]], bool]


class ErrorSeverity(Enum):
    """Error severity levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Context information for error handling"""
    error: Exception
    context: str
    severity: ErrorSeverity
    user_message: str
    solutions: List[str]
    details: Dict[str, Any]
    timestamp: float
    recoverable: bool = True


class ProductionErrorHandler:
    """Error handler with statistics, history and recovery strategies"""

    CIRCUIT_BREAKER_THRESHOLD = 3

    def __init__(self, max_history: int = 100):
        self.error_counts: Dict[str, int] = {}
        self.error_history: List[ErrorContext] = []
        self.recovery_strategies: Dict[str, RecoveryStrategy] = {}
        self.circuit_breakers: Dict[str, bool] = {}
        self.max_history = max_history

    def handle_error(self, error: Exception, context: str,
                     severity: ErrorSeverity = ErrorSeverity.MEDIUM,
                     details: Optional[Dict[str, Any]] = None) -> bool:
        """
        Record an error and attempt recovery

        Args:
            error: The exception that occurred
            context: Context where the error occurred (midi_decode, midi_connection, ...)
            severity: Error severity level
            details: Additional context details

        Returns:
            True if a recovery strategy succeeded, False otherwise
        """
        self.error_counts[context] = self.error_counts.get(context, 0) + 1

        error_ctx = self._create_error_context(error, context, severity, details or {})
        self._log_error(error_ctx)
        self._store_error(error_ctx)

        if self._is_circuit_breaker_open(context):
            log.warning(f"Circuit breaker open for {context}, skipping recovery")
            return False

        if error_ctx.recoverable and context in self.recovery_strategies:
            try:
                if self.recovery_strategies[context](error, details or {}):
                    log.info(f"✓ Recovery successful for {context}")
                    self._reset_circuit_breaker(context)
                    return True
                log.warning(f"✗ Recovery failed for {context}")
            except Exception as recovery_error:
                log.error(f"Recovery strategy failed for {context}: {recovery_error}")
            self._update_circuit_breaker(context)

        return False

    def register_recovery_strategy(self, context: str, strategy: RecoveryStrategy):
        """Register a recovery callable for a context"""
        self.recovery_strategies[context] = strategy

    def format_error(self, error_ctx: ErrorContext) -> str:
        """Format error for user display with solutions"""
        lines = [f"Error: {error_ctx.user_message}"]

        if error_ctx.solutions:
            lines.append("Solution(s):")
            for i, solution in enumerate(error_ctx.solutions[:3], 1):
                lines.append(f"  {i}. {solution}")

        if error_ctx.details:
            lines.append("Details:")
            for key, value in list(error_ctx.details.items())[:5]:
                lines.append(f"  {key}: {str(value)[:67]}")

        return "\n".join(lines)

    def get_error_statistics(self) -> Dict[str, Any]:
        """Get error statistics for monitoring"""
        return {
            'total_errors': sum(self.error_counts.values()),
            'error_counts': dict(self.error_counts),
            'recent_errors': len([e for e in self.error_history
                                  if e.timestamp > (time.time() - 3600)]),
            'circuit_breakers_open': sum(1 for is_open in self.circuit_breakers.values() if is_open),
        }

    def reset_statistics(self):
        self.error_counts.clear()
        self.error_history.clear()
        self.circuit_breakers.clear()

    def _create_error_context(self, error: Exception, context: str,
                              severity: ErrorSeverity, details: Dict[str, Any]) -> ErrorContext:
        user_message, solutions, recoverable = self._analyze_error(error, context, details)

        return ErrorContext(
            error=error,
            context=context,
            severity=severity,
            user_message=user_message,
            solutions=solutions,
            details=details,
            timestamp=time.time(),
            recoverable=recoverable
        )

    def _analyze_error(self, error: Exception, context: str,
                       details: Dict[str, Any]) -> Tuple[str, List[str], bool]:
        """Generate a user-facing message and solutions for an error"""

        if context == 'midi_decode':
            if isinstance(error, UnknownStatusError):
                return (
                    "Unrecognized MIDI Status Byte",
                    [
                        "The transport delivered a data byte where a status byte was expected",
                        "Check the device for running-status output the port does not expand",
                        "Message was dropped; following messages are unaffected",
                    ],
                    False
                )

        elif context == 'midi_connection':
            return (
                "MIDI Device Connection Failed",
                [
                    "Check if MIDI device is connected: aconnect -l",
                    "Verify MIDI device permissions",
                    "Try a specific port: midiwire monitor --port 'Device Name'",
                    "List available ports: midiwire ports",
                ],
                True
            )

        elif context == 'event_publish':
            return (
                "Event Publisher Failed",
                [
                    "A publisher raised while handling a MIDI notification",
                    "Check the subscriber registered for this topic",
                ],
                False
            )

        elif context == 'config_load':
            return (
                "Configuration Could Not Be Loaded",
                [
                    "Check the YAML syntax and value types of the configuration file",
                    "Defaults are used until the file is fixed",
                    "Recreate it with: midiwire init-config --force",
                ],
                False
            )

        return (
            f"Unexpected Error in {context}",
            [
                "Run with --verbose for more details",
                "Report the issue with the logged stack trace",
            ],
            True
        )

    def _is_circuit_breaker_open(self, context: str) -> bool:
        return self.circuit_breakers.get(context, False)

    def _update_circuit_breaker(self, context: str):
        """Open the breaker after repeated failures"""
        error_count = self.error_counts.get(context, 0)
        if error_count >= self.CIRCUIT_BREAKER_THRESHOLD:
            self.circuit_breakers[context] = True
            log.warning(f"Circuit breaker opened for {context} after {error_count} failures")

    def _reset_circuit_breaker(self, context: str):
        """Reset circuit breaker after successful recovery"""
        if context in self.circuit_breakers:
            del self.circuit_breakers[context]
            self.error_counts.pop(context, None)
            log.info(f"Circuit breaker reset for {context}")

    def _log_error(self, error_ctx: ErrorContext):
        """Log error with appropriate level"""
        message = f"[{error_ctx.context}] {error_ctx.user_message}: {error_ctx.error}"
        if error_ctx.severity == ErrorSeverity.CRITICAL:
            log.critical(message)
        elif error_ctx.severity == ErrorSeverity.HIGH:
            log.error(message)
        elif error_ctx.severity == ErrorSeverity.MEDIUM:
            log.warning(message)
        else:
            log.info(message)

        log.debug(f"Stack trace:\n{''.join(traceback.format_tb(error_ctx.error.__traceback__))}")

    def _store_error(self, error_ctx: ErrorContext):
        self.error_history.append(error_ctx)

        if len(self.error_history) > self.max_history:
            self.error_history = self.error_history[-self.max_history:]
