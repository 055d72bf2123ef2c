import structlog
import logging
import sys
from typing import Dict, Any, Optional
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "deskagent"
) -> None:
    """Setup structured logging configuration"""

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=os.getenv("SERVICE_VERSION", "unknown")
    )


class AgentLogger:
    """Specialized logger for agent loop operations"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_iteration(
        self,
        conversation_id: str,
        iteration: int,
        max_iterations: int,
        history_length: int,
        **kwargs
    ):
        """Log the start of a loop iteration"""

        self.logger.info(
            "loop_iteration",
            conversation_id=conversation_id,
            iteration=iteration,
            max_iterations=max_iterations,
            history_length=history_length,
            **kwargs
        )

    def log_tool_execution(
        self,
        tool_name: str,
        conversation_id: str,
        call_id: Optional[str] = None,
        input_data: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        """Log tool execution events"""

        self.logger.info(
            "tool_execution",
            tool_name=tool_name,
            conversation_id=conversation_id,
            call_id=call_id,
            input_keys=sorted((input_data or {}).keys()),
            duration_ms=duration_ms,
            success=success,
            error=error
        )

    def log_message_persisted(
        self,
        conversation_id: str,
        message_number: int,
        tool_call_count: int,
        content_length: int
    ):
        """Log a durable assistant message write"""

        self.logger.info(
            "assistant_message_persisted",
            conversation_id=conversation_id,
            message_number=message_number,
            tool_call_count=tool_call_count,
            content_length=content_length
        )

    def log_run_finished(
        self,
        conversation_id: str,
        success: bool,
        stop_reason: str,
        iterations: int,
        messages_persisted: int,
        error: Optional[str] = None
    ):
        """Log the outcome of a whole run"""

        log = self.logger.info if success else self.logger.warning
        log(
            "run_finished",
            conversation_id=conversation_id,
            success=success,
            stop_reason=stop_reason,
            iterations=iterations,
            messages_persisted=messages_persisted,
            error=error
        )


# Global logger instance
agent_logger = AgentLogger("deskagent")


class MetricsCollector:
    """Collect and export metrics"""

    def __init__(self):
        self.metrics: Dict[str, Any] = {}

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        """Record operation latency"""

        key = f"latency.{operation}"
        if key not in self.metrics:
            self.metrics[key] = {
                "count": 0,
                "sum": 0,
                "min": float('inf'),
                "max": 0
            }

        self.metrics[key]["count"] += 1
        self.metrics[key]["sum"] += duration_ms
        self.metrics[key]["min"] = min(self.metrics[key]["min"], duration_ms)
        self.metrics[key]["max"] = max(self.metrics[key]["max"], duration_ms)

        agent_logger.logger.debug(
            "metric",
            metric_type="latency",
            operation=operation,
            duration_ms=duration_ms,
            tags=tags or {}
        )

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        """Increment a counter metric"""

        if name not in self.metrics:
            self.metrics[name] = 0
        self.metrics[name] += value

        agent_logger.logger.debug(
            "metric",
            metric_type="counter",
            name=name,
            value=value,
            tags=tags or {}
        )

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get summary of all metrics"""

        summary = {}
        for key, value in self.metrics.items():
            if isinstance(value, dict) and "count" in value:
                summary[key] = {
                    "count": value["count"],
                    "avg": value["sum"] / value["count"] if value["count"] > 0 else 0,
                    "min": value["min"] if value["min"] != float('inf') else 0,
                    "max": value["max"]
                }
            else:
                summary[key] = value

        return summary


# Global metrics collector
metrics = MetricsCollector()
