import os
import math
import logging
import uuid
import time
from flask import Flask, request, jsonify, g
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.middleware.proxy_fix import ProxyFix
from dotenv import load_dotenv
from score_trace import TraceContext, set_trace, clear_trace
from habitability import HabitabilityScorer
from spatial_data import load_dataset

load_dotenv()

# ---------------------------------------------------------------------------
# Sentry error tracking: gated on SENTRY_DSN; silent when unset (local dev)
# ---------------------------------------------------------------------------
_sentry_dsn = os.environ.get("SENTRY_DSN")
if _sentry_dsn:
    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration

    sentry_sdk.init(
        dsn=_sentry_dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=0.0,
        release=os.environ.get("GIT_COMMIT_SHA"),
        environment=os.environ.get("DEPLOY_ENVIRONMENT", "production"),
    )

app = Flask(__name__)

# Proxy fix: behind a reverse proxy X-Forwarded-For carries the client IP;
# ProxyFix rewrites request.remote_addr so Flask-Limiter sees the real one.
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Rate limiting: in-memory storage is per-process (with 2 gunicorn workers
# the effective limit is ~2x nominal).
# ---------------------------------------------------------------------------
RATE_LIMIT_DEFAULT = os.environ.get("RATE_LIMIT_DEFAULT", "60/minute")

# Same default as gunicorn_config.bind and .env.example
DEFAULT_PORT = 8000

limiter = Limiter(
    get_remote_address,
    app=app,
    default_limits=[RATE_LIMIT_DEFAULT],
    storage_uri="memory://",
)
logging.getLogger("flask-limiter").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Scorer: reference data is loaded once per process and never mutated
# ---------------------------------------------------------------------------
_SCORER_KEY = "habitability_scorer"


def init_scorer(data_dir=None) -> HabitabilityScorer:
    """Load the reference dataset and attach a scorer to the app."""
    scorer = HabitabilityScorer(load_dataset(data_dir))
    app.extensions[_SCORER_KEY] = scorer
    if scorer.dataset.is_empty:
        logger.warning(
            "No reference data loaded. Every score request will be rejected "
            "as out of bounds until HABITABILITY_DATA_DIR points at the datasets."
        )
    return scorer


def get_scorer() -> HabitabilityScorer:
    scorer = app.extensions.get(_SCORER_KEY)
    if scorer is None:
        scorer = init_scorer()
    return scorer


# ---------------------------------------------------------------------------
# Request ID + trace middleware
# ---------------------------------------------------------------------------
def _generate_request_id():
    return uuid.uuid4().hex[:10]


@app.before_request
def _set_request_context():
    """Set request ID and trace context on every request."""
    g.request_id = _generate_request_id()
    g.trace = TraceContext(trace_id=g.request_id, model_version=get_scorer().model.version)
    set_trace(g.trace)


@app.teardown_request
def _clear_request_context(exc):
    trace = getattr(g, "trace", None)
    if trace is not None and trace.stages:
        trace.log_summary()
    clear_trace()


# ---------------------------------------------------------------------------
# Input parsing
# ---------------------------------------------------------------------------

def _parse_coordinate(raw):
    """Return *raw* as a finite float, or None if it is not one."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def _first_present(source, *keys):
    for key in keys:
        if source.get(key) is not None:
            return source.get(key)
    return None


def _extract_lat_lon():
    """Pull (lat, lon) from the query string or a JSON body."""
    if request.method == "POST":
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return None, None
        source = body
    else:
        source = request.args
    lat = _parse_coordinate(_first_present(source, "lat", "latitude"))
    lon = _parse_coordinate(_first_present(source, "lon", "lng", "longitude"))
    return lat, lon


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.route("/api/score", methods=["GET", "POST"])
def api_score():
    """Score a single point.  Bounds are checked here, not in the scorer.

    ``?trace=1`` adds the per-stage timings to the response.
    """
    request_id = g.request_id
    lat, lon = _extract_lat_lon()
    if lat is None or lon is None:
        return jsonify({
            "error": "lat and lon must both be numeric decimal degrees",
            "request_id": request_id,
        }), 400

    scorer = get_scorer()
    t0 = time.time()
    in_bounds = scorer.is_within_bounds(lat, lon)
    g.trace.record_stage("bounds_check", t0, time.time())
    if not in_bounds:
        logger.info("[%s] Rejected out-of-bounds point (%.5f, %.5f)", request_id, lat, lon)
        bounds = scorer.bounds
        return jsonify({
            "error": "Location is outside the area covered by the habitability data",
            "request_id": request_id,
            "bounds": bounds.to_dict() if bounds else None,
        }), 422

    result = scorer.score(lat, lon)
    payload = result.to_dict()
    payload["model_version"] = scorer.model.version
    payload["request_id"] = request_id
    if request.args.get("trace") == "1":
        payload["trace"] = g.trace.full_trace_dict()
    return jsonify(payload)


@app.route("/api/bounds")
def api_bounds():
    """Geographic envelope of the loaded data, for client-side pre-validation."""
    bounds = get_scorer().bounds
    if bounds is None:
        return jsonify({"error": "No reference data loaded"}), 503
    return jsonify(bounds.to_dict())


@app.route("/healthz")
@limiter.exempt
def healthz():
    """Lightweight health-check endpoint for monitoring."""
    scorer = get_scorer()
    dataset = scorer.dataset
    ok = not dataset.is_empty
    return jsonify({
        "status": "ok" if ok else "degraded",
        "amenities": len(dataset.amenities),
        "polygons": len(dataset.polygons),
        "model_version": scorer.model.version,
    }), 200 if ok else 503


@app.errorhandler(429)
def rate_limit_exceeded(e):
    return jsonify({
        "error": "Too many requests. Please wait and try again.",
    }), 429


@app.errorhandler(404)
def not_found(e):
    return jsonify({"error": "Not found"}), 404


@app.errorhandler(500)
def internal_error(e):
    logger.error(
        "[%s] Unhandled error: %r",
        getattr(g, "request_id", "-"),
        getattr(e, "original_exception", e),
    )
    return jsonify({
        "error": "Internal server error",
        "request_id": getattr(g, "request_id", None),
    }), 500


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------

# Load reference data on import so the first request doesn't pay for it
init_scorer()

if __name__ == "__main__":
    port = int(os.environ.get("PORT", DEFAULT_PORT))
    debug = os.environ.get("FLASK_DEBUG", "0") == "1"
    app.run(host="0.0.0.0", port=port, debug=debug)
