"""
Request-scoped tracing for habitability score debugging.

Provides a thread-local TraceContext that records:
  - Per-stage timing (stage_name, start/end, elapsed_ms, errors)
  - End-of-request summary (total_elapsed, stage counts, outcome)

Usage:
    from score_trace import TraceContext, get_trace, set_trace, clear_trace

    # In the request handler (app.py):
    ctx = TraceContext(trace_id=request_id)
    set_trace(ctx)
    ...
    ctx.log_summary()
    clear_trace()

    # In the scorer (automatically via _timed_stage):
    trace = get_trace()
    if trace:
        trace.record_stage(...)
"""

import time
import threading
import logging
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any

logger = logging.getLogger(__name__)


# =============================================================================
# Data classes for trace records
# =============================================================================

@dataclass
class StageRecord:
    """One scoring stage (bounds_check, zone_score, proximity_score)."""
    stage_name: str
    start_ts: float = 0.0
    end_ts: float = 0.0
    elapsed_ms: float = 0.0
    error_class: str = ""
    error_message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage_name,
            "elapsed_ms": self.elapsed_ms,
            "error": (
                f"{self.error_class}: {self.error_message}"
                if self.error_class else None
            ),
        }


# =============================================================================
# Trace context
# =============================================================================

@dataclass
class TraceContext:
    """Accumulates timing data for a single score request."""
    trace_id: str
    request_start: float = field(default_factory=time.time)
    stages: List[StageRecord] = field(default_factory=list)
    model_version: str = ""

    def record_stage(
        self,
        stage_name: str,
        start_ts: float,
        end_ts: float,
        error_class: str = "",
        error_message: str = "",
    ):
        # Scoring stages finish in microseconds; keep sub-millisecond precision.
        rec = StageRecord(
            stage_name=stage_name,
            start_ts=start_ts,
            end_ts=end_ts,
            elapsed_ms=round((end_ts - start_ts) * 1000, 3),
            error_class=error_class,
            error_message=error_message,
        )
        self.stages.append(rec)

        status = "ERR" if error_class else "OK"
        err_info = f" err={error_class}: {error_message}" if error_class else ""
        logger.debug(
            "  [stage] trace=%s %s %s %.3fms%s",
            self.trace_id,
            stage_name,
            status,
            rec.elapsed_ms,
            err_info,
        )

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def summary_dict(self) -> Dict[str, Any]:
        """Return a summary dict suitable for logging and JSON responses."""
        total_elapsed = round((time.time() - self.request_start) * 1000, 3)
        completed = [s for s in self.stages if not s.error_class]
        errored = [s for s in self.stages if s.error_class]

        if errored and not completed:
            outcome = "error"
        elif not completed:
            outcome = "empty"
        elif errored:
            outcome = "partial"
        else:
            outcome = "success"

        result = {
            "trace_id": self.trace_id,
            "total_elapsed_ms": total_elapsed,
            "stages_completed": len(completed),
            "stages_errored": len(errored),
            "final_outcome": outcome,
        }
        if self.model_version:
            result["model_version"] = self.model_version
        return result

    def log_summary(self):
        """Emit a single structured summary log line."""
        s = self.summary_dict()
        logger.info(
            "[trace-summary] trace=%s total_ms=%.3f completed=%d errored=%d outcome=%s",
            s["trace_id"],
            s["total_elapsed_ms"],
            s["stages_completed"],
            s["stages_errored"],
            s["final_outcome"],
        )

    def full_trace_dict(self) -> Dict[str, Any]:
        """Summary plus per-stage timings, returned by /api/score?trace=1."""
        summary = self.summary_dict()
        summary["stages"] = [s.to_dict() for s in self.stages]
        return summary


# =============================================================================
# Thread-local storage
# =============================================================================

_trace_local = threading.local()


def get_trace() -> Optional[TraceContext]:
    """Get the current request's trace context, or None."""
    return getattr(_trace_local, "ctx", None)


def set_trace(ctx: Optional[TraceContext]):
    """Set the trace context for the current thread."""
    _trace_local.ctx = ctx


def clear_trace():
    """Clear the current trace context."""
    _trace_local.ctx = None
