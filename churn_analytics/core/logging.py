"""
Logging Configuration and Utilities

Structured logging for the churn engine. Loggers are structlog
BoundLoggers wrapping stdlib loggers; structlog processors enrich each
event and hand it to the stdlib handler, whose python-json-logger
formatter renders the event and its bound keys (such as account_id)
as one JSON object.
"""

import sys
import logging
from typing import Optional
from datetime import datetime
from functools import wraps

import structlog
from pythonjsonlogger import jsonlogger

from churn_analytics.config.settings import settings

SERVICE_NAME = 'churn-analytics'


class ServiceContextProcessor:
    """Add service and environment to every event"""

    def __call__(self, logger, method_name, event_dict):
        event_dict.setdefault('service', SERVICE_NAME)
        event_dict.setdefault('environment', settings.ENVIRONMENT)
        return event_dict


class PerformanceLogProcessor:
    """Add performance category to timed events"""

    def __call__(self, logger, method_name, event_dict):
        if 'execution_time' in event_dict:
            exec_time = event_dict['execution_time']
            if exec_time > 5.0:
                event_dict['performance_category'] = 'slow'
            elif exec_time > 1.0:
                event_dict['performance_category'] = 'moderate'
            else:
                event_dict['performance_category'] = 'fast'

        return event_dict


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter for structured logging"""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault('level', record.levelname)
        log_record.setdefault('logger', record.name)
        log_record['module'] = record.module
        log_record['line'] = record.lineno


class LoggingConfig:
    """Centralized logging configuration"""

    @staticmethod
    def configure_structured_logging():
        """Configure structlog on top of stdlib logging"""

        processors = [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            ServiceContextProcessor(),
            PerformanceLogProcessor(),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
        ]

        if settings.LOG_FORMAT == "json":
            # Bound keys travel as `extra` to the JSON formatter
            processors.append(structlog.stdlib.render_to_log_kwargs)
        else:
            processors.append(structlog.processors.KeyValueRenderer(key_order=['event']))

        structlog.configure(
            processors=processors,
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            context_class=dict,
            cache_logger_on_first_use=True,
        )

    @staticmethod
    def configure_standard_logging():
        """Configure the stdlib root handler"""

        level = getattr(logging, settings.LOG_LEVEL)
        root_logger = logging.getLogger()
        root_logger.setLevel(level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)

        if settings.LOG_FORMAT == "json":
            formatter = CustomJsonFormatter('%(asctime)s %(name)s %(levelname)s %(message)s')
        else:
            formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        LoggingConfig._configure_library_loggers()

    @staticmethod
    def _configure_library_loggers():
        """Configure logging for external libraries"""
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        logging.getLogger("redis").setLevel(logging.WARNING)
        logging.getLogger("elastic_transport").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get configured logger instance.

    Args:
        name: Logger name (defaults to the churn_analytics root logger)

    Returns:
        structlog logger; use bind() to attach context such as account_id
    """
    return structlog.stdlib.get_logger(name or 'churn_analytics')


def log_execution_time(logger_name: Optional[str] = None):
    """
    Decorator to log function execution time.

    Args:
        logger_name: Custom logger name
    """
    def decorator(func):
        logger = get_logger(logger_name or func.__module__)

        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = datetime.utcnow()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                execution_time = (datetime.utcnow() - start_time).total_seconds()
                logger.error(
                    "Function execution failed",
                    operation=func.__qualname__,
                    execution_time=execution_time,
                    error_type=type(e).__name__,
                )
                raise

            execution_time = (datetime.utcnow() - start_time).total_seconds()
            logger.debug(
                "Function executed successfully",
                operation=func.__qualname__,
                execution_time=execution_time,
            )
            return result

        return wrapper

    return decorator


_configured = False


def setup_logging():
    """Initialize logging configuration"""
    global _configured
    if _configured:
        return

    LoggingConfig.configure_structured_logging()
    LoggingConfig.configure_standard_logging()
    _configured = True

    get_logger(__name__).info(
        "Logging system initialized",
        log_level=settings.LOG_LEVEL,
        log_format=settings.LOG_FORMAT,
    )


# Initialize logging when module is imported
setup_logging()

__all__ = [
    'get_logger',
    'setup_logging',
    'log_execution_time',
    'LoggingConfig',
    'CustomJsonFormatter',
]
