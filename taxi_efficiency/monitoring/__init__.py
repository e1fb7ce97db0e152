"""
Pipeline Monitoring
===================

Structured logging, stage tracking, counters and alerts for pipeline runs.

Usage:
    from taxi_efficiency.monitoring import PipelineMonitor

    monitor = PipelineMonitor("full_refresh")

    with monitor.track_stage("clean") as stage:
        clean, stats = clean_trips(raw, zones)
        stage.records_in = stats.raw_rows
        stage.records_out = stats.clean_rows
        stage.records_rejected = stats.rejected_rows

    summary = monitor.finish()
"""

import json
import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Structured Logging
# =============================================================================

class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON for log aggregators."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": _utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


def get_logger(
    name: str,
    level: int = logging.INFO,
    json_format: bool = True
) -> logging.Logger:
    """
    Get a logger with its own stdout handler.

    Args:
        name: Logger name
        level: Logging level
        json_format: If True, output JSON; otherwise, human-readable

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)

        if json_format:
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
            ))

        logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = False

    return logger


# =============================================================================
# Metrics
# =============================================================================

class MetricType(str, Enum):
    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass
class Metric:
    """A single metric measurement."""
    name: str
    value: float
    metric_type: MetricType
    timestamp: datetime = field(default_factory=_utcnow)
    tags: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "type": self.metric_type.value,
            "timestamp": self.timestamp.isoformat(),
            "tags": self.tags,
        }


@dataclass
class StageMetrics:
    """Record counts and timing of one pipeline stage."""
    name: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    records_in: int = 0
    records_out: int = 0
    records_rejected: int = 0
    error: Optional[str] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def rejection_rate(self) -> float:
        if self.records_in == 0:
            return 0.0
        return self.records_rejected / self.records_in

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.name,
            "duration_seconds": self.duration_seconds,
            "records_in": self.records_in,
            "records_out": self.records_out,
            "records_rejected": self.records_rejected,
            "rejection_rate": round(self.rejection_rate, 4),
            "success": self.success,
            "error": self.error,
        }


# =============================================================================
# Pipeline Monitor
# =============================================================================

class AlertLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class Alert:
    """An alert raised while a stage ran."""
    level: AlertLevel
    message: str
    stage: str
    timestamp: datetime = field(default_factory=_utcnow)
    details: Dict[str, Any] = field(default_factory=dict)


class PipelineMonitor:
    """
    Tracks stages of one pipeline run, collects metrics and raises alerts.

    Alerts:
        - rejection rate >= 5%: warning, >= 20%: critical
        - stage with input but no output: warning
        - stage raising an exception: critical (exception is re-raised)
    """

    REJECTION_RATE_WARNING = 0.05
    REJECTION_RATE_CRITICAL = 0.20

    def __init__(
        self,
        pipeline_name: str,
        run_id: Optional[str] = None,
        json_logging: bool = True
    ):
        self.pipeline_name = pipeline_name
        self.run_id = run_id or _utcnow().strftime("%Y%m%d_%H%M%S")
        self.start_time = _utcnow()
        self.end_time: Optional[datetime] = None

        self.stages: List[StageMetrics] = []
        self.metrics: List[Metric] = []
        self.alerts: List[Alert] = []

        self.logger = get_logger(
            f"pipeline.{pipeline_name}",
            json_format=json_logging
        )

        self._log(logging.INFO, f"Pipeline '{pipeline_name}' started", event="pipeline_start")

    def _log(self, level: int, message: str, **fields: Any) -> None:
        self.logger.log(
            level,
            message,
            extra={"extra_fields": {
                "pipeline": self.pipeline_name,
                "run_id": self.run_id,
                **fields,
            }}
        )

    @contextmanager
    def track_stage(self, stage_name: str) -> Iterator[StageMetrics]:
        """
        Track a pipeline stage.

        Yields:
            StageMetrics to fill with record counts
        """
        stage = StageMetrics(name=stage_name, start_time=_utcnow())
        self._log(logging.INFO, f"Stage '{stage_name}' started", event="stage_start", stage=stage_name)

        try:
            yield stage
            stage.end_time = _utcnow()
            self._check_stage_alerts(stage)
            self._log(
                logging.INFO,
                f"Stage '{stage_name}' completed in {stage.duration_seconds:.2f}s",
                event="stage_complete",
                stage=stage_name,
                metrics=stage.to_dict(),
            )

        except Exception as e:
            stage.end_time = _utcnow()
            stage.error = str(e)
            self._log(
                logging.ERROR,
                f"Stage '{stage_name}' failed: {e}",
                event="stage_error",
                stage=stage_name,
                error=str(e),
            )
            self._add_alert(
                AlertLevel.CRITICAL,
                f"Stage '{stage_name}' failed: {e}",
                stage_name,
                {"error_type": type(e).__name__}
            )
            raise

        finally:
            self.stages.append(stage)

    def _check_stage_alerts(self, stage: StageMetrics) -> None:
        if stage.rejection_rate >= self.REJECTION_RATE_CRITICAL:
            self._add_alert(
                AlertLevel.CRITICAL,
                f"High rejection rate: {stage.rejection_rate:.1%}",
                stage.name,
                {"rejection_rate": stage.rejection_rate}
            )
        elif stage.rejection_rate >= self.REJECTION_RATE_WARNING:
            self._add_alert(
                AlertLevel.WARNING,
                f"Elevated rejection rate: {stage.rejection_rate:.1%}",
                stage.name,
                {"rejection_rate": stage.rejection_rate}
            )

        if stage.records_in > 0 and stage.records_out == 0:
            self._add_alert(
                AlertLevel.WARNING,
                "Stage produced no output records",
                stage.name,
                {"records_in": stage.records_in}
            )

    def _add_alert(
        self,
        level: AlertLevel,
        message: str,
        stage: str,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        details = details or {}
        self.alerts.append(Alert(level=level, message=message, stage=stage, details=details))

        log_level = {
            AlertLevel.INFO: logging.INFO,
            AlertLevel.WARNING: logging.WARNING,
            AlertLevel.CRITICAL: logging.CRITICAL,
        }[level]

        self._log(
            log_level,
            f"ALERT [{level.value.upper()}]: {message}",
            event="alert",
            alert_level=level.value,
            stage=stage,
            **details,
        )

    def record_metric(
        self,
        name: str,
        value: float,
        metric_type: MetricType = MetricType.GAUGE,
        tags: Optional[Dict[str, str]] = None
    ) -> None:
        """Record a custom metric (e.g. a diagnostic counter)."""
        self.metrics.append(
            Metric(name=name, value=value, metric_type=metric_type, tags=tags or {})
        )

    def finish(self) -> Dict[str, Any]:
        """
        Finish monitoring and return the run summary.

        Returns:
            Dictionary with stages, metrics and alert counts
        """
        self.end_time = _utcnow()
        total_duration = (self.end_time - self.start_time).total_seconds()
        failed_stages = [s for s in self.stages if not s.success]

        summary = {
            "pipeline": self.pipeline_name,
            "run_id": self.run_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_seconds": round(total_duration, 2),
            "success": len(failed_stages) == 0,
            "stages_total": len(self.stages),
            "stages_failed": len(failed_stages),
            "alerts_count": len(self.alerts),
            "alerts_by_level": {
                level.value: len([a for a in self.alerts if a.level == level])
                for level in AlertLevel
            },
            "stages": [s.to_dict() for s in self.stages],
            "metrics": [m.to_dict() for m in self.metrics],
        }

        self._log(
            logging.INFO,
            f"Pipeline '{self.pipeline_name}' finished in {total_duration:.2f}s",
            event="pipeline_complete",
            summary=summary,
        )

        return summary
