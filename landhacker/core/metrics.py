import time
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# Define metrics (names follow Prometheus conventions)
REQ_COUNT = Counter("http_requests_total", "Total HTTP requests", ["path","method","code"])
REQ_LATENCY = Histogram("http_request_duration_seconds", "Request latency", ["path","method"])

# Domain metrics
ANALYSIS_RUNS = Counter(
    "landhacker_analysis_runs_total", "Property analyses by terminal stage", ["outcome", "stage"]
)
ESTIMATE_CORRECTIONS = Counter(
    "landhacker_estimate_corrections_total", "AI estimates pulled back into the price-per-acre band"
)
COLLABORATOR_DEGRADED = Counter(
    "landhacker_collaborator_degraded_total", "Non-fatal collaborator failures absorbed", ["collaborator"]
)
AI_LATENCY = Histogram("landhacker_ai_valuation_seconds", "AI valuation call latency")

class PromMiddleware(BaseHTTPMiddleware):
    """
    Measures latency and counts requests.
    """
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed = time.perf_counter() - start

        # Prefer the route template to keep label cardinality bounded
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        method = request.method
        code = str(response.status_code)

        REQ_COUNT.labels(path=path, method=method, code=code).inc()
        REQ_LATENCY.labels(path=path, method=method).observe(elapsed)
        return response

async def metrics_endpoint(request: Request):
    """
    GET /v1/metrics, scraped by Prometheus.
    """
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
