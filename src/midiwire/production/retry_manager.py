"""
Production Retry Manager

Retry logic with exponential backoff and jitter for transient failures,
such as a USB MIDI device that is still enumerating when we try to open it.
"""

import time
import random
import logging
from typing import Callable, Any, Dict, Optional
from dataclasses import dataclass
from enum import Enum

log = logging.getLogger(__name__)


class RetryStrategy(Enum):
    """Retry strategies"""
    EXPONENTIAL_BACKOFF = "exponential_backoff"
    LINEAR_BACKOFF = "linear_backoff"
    FIXED_DELAY = "fixed_delay"
    IMMEDIATE = "immediate"


@dataclass
class RetryConfig:
    """Configuration for retry behavior"""
    max_attempts: int = 3
    base_delay: float = 0.1
    max_delay: float = 60.0
    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL_BACKOFF
    jitter: bool = True
    multiplier: float = 2.0
    retryable_exceptions: tuple = (Exception,)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    def should_retry(self, exception: Exception, attempt: int) -> bool:
        """Check if exception should be retried"""
        return (
            attempt + 1 < self.max_attempts and
            isinstance(exception, self.retryable_exceptions)
        )


class RetryResult:
    """Result of a retry operation"""

    def __init__(self, success: bool, result: Any = None, error: Optional[Exception] = None,
                 attempts: int = 0, total_time: float = 0.0):
        self.success = success
        self.result = result
        self.error = error
        self.attempts = attempts
        self.total_time = total_time

    @property
    def failed(self) -> bool:
        return not self.success


class ProductionRetryManager:
    """Retry manager with named retry policies and metrics"""

    def __init__(self, default_configs: Optional[Dict[str, RetryConfig]] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.default_configs: Dict[str, RetryConfig] = {}
        self._sleep = sleep
        self.metrics = self._empty_metrics()

        self._setup_default_configs()
        if default_configs:
            self.default_configs.update(default_configs)

    def retry_sync(self, operation: Callable, config_name: str,
                   *args, **kwargs) -> Any:
        """
        Execute operation with retry logic

        Args:
            operation: Function to retry
            config_name: Name of retry configuration to use
            *args: Arguments to pass to operation
            **kwargs: Keyword arguments to pass to operation

        Returns:
            Result of operation if successful

        Raises:
            Last exception if all retries exhausted or the exception is not retryable
        """
        result = self.execute_with_result(operation, config_name, *args, **kwargs)
        if result.failed:
            log.error(f"Retry failed for {config_name} after {result.attempts} attempt(s)")
            raise result.error
        return result.result

    def execute_with_result(self, operation: Callable, config_name: str,
                            *args, **kwargs) -> RetryResult:
        """
        Execute operation and return a detailed result object instead of raising
        """
        config = self._get_config(config_name)
        start_time = time.time()
        last_exception: Optional[Exception] = None
        attempts = 0

        for attempt in range(config.max_attempts):
            attempts = attempt + 1
            try:
                result = operation(*args, **kwargs)
            except Exception as e:
                last_exception = e

                exc_type = type(e).__name__
                self.metrics['exceptions_by_type'][exc_type] = (
                    self.metrics['exceptions_by_type'].get(exc_type, 0) + 1
                )

                if not config.should_retry(e, attempt):
                    log.warning(f"Giving up on {config_name}: {e}")
                    break

                delay = self._calculate_delay(config, attempt)
                log.debug(f"Retry attempt {attempt + 1} failed for {config_name}: {e}")
                log.debug(f"Waiting {delay:.2f}s before retry...")
                self._sleep(delay)
                continue

            total_time = time.time() - start_time
            if attempt > 0:
                self.metrics['successful_retries'] += 1
                self.metrics['total_retries'] += attempt
                self.metrics['total_retry_time'] += total_time
                log.info(f"✓ Retry successful for {config_name} (attempt {attempt + 1})")

            return RetryResult(success=True, result=result,
                               attempts=attempts, total_time=total_time)

        total_time = time.time() - start_time
        self.metrics['failed_retries'] += 1
        self.metrics['total_retries'] += attempts
        self.metrics['total_retry_time'] += total_time

        return RetryResult(success=False, error=last_exception,
                           attempts=attempts, total_time=total_time)

    def register_config(self, name: str, config: RetryConfig):
        """Register or replace a named retry configuration"""
        self.default_configs[name] = config
        log.debug(f"Registered retry config: {name}")

    def get_metrics(self) -> Dict[str, Any]:
        """Get retry metrics"""
        total_attempts = (self.metrics['successful_retries'] +
                          self.metrics['failed_retries'])

        return {
            **self.metrics,
            'total_attempts': total_attempts,
            'success_rate': (
                (self.metrics['successful_retries'] / max(1, total_attempts)) * 100
            ),
            'average_retry_time': (
                self.metrics['total_retry_time'] / max(1, total_attempts)
            )
        }

    def reset_metrics(self):
        self.metrics = self._empty_metrics()

    @staticmethod
    def _empty_metrics() -> Dict[str, Any]:
        return {
            'total_retries': 0,
            'successful_retries': 0,
            'failed_retries': 0,
            'total_retry_time': 0.0,
            'exceptions_by_type': {},
        }

    def _get_config(self, name: str) -> RetryConfig:
        """Get retry configuration by name"""
        if name in self.default_configs:
            return self.default_configs[name]

        log.warning(f"Retry config '{name}' not found, using default")
        return RetryConfig()

    def _calculate_delay(self, config: RetryConfig, attempt: int) -> float:
        """Calculate delay between retry attempts"""
        if config.strategy == RetryStrategy.EXPONENTIAL_BACKOFF:
            delay = config.base_delay * (config.multiplier ** attempt)
        elif config.strategy == RetryStrategy.LINEAR_BACKOFF:
            delay = config.base_delay * (attempt + 1)
        elif config.strategy == RetryStrategy.FIXED_DELAY:
            delay = config.base_delay
        else:  # IMMEDIATE
            delay = 0.0

        delay = min(delay, config.max_delay)

        if config.jitter and delay > 0:
            jitter_range = delay * 0.1
            delay += random.uniform(-jitter_range, jitter_range)

        return max(0.0, delay)

    def _setup_default_configs(self):
        """Setup default retry configurations"""
        self.default_configs.update({
            'midi_connection': RetryConfig(
                max_attempts=3,
                base_delay=0.3,
                max_delay=2.0,
                strategy=RetryStrategy.EXPONENTIAL_BACKOFF,
                retryable_exceptions=(ConnectionError, OSError)
            ),
        })
