# Prometheus metrics for FastAPI and outbound Firebase calls
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Request
from starlette.responses import Response as StarletteResponse
from starlette.middleware.base import BaseHTTPMiddleware
import time

# Metrics
REQUEST_COUNT = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'http_status'])
REQUEST_LATENCY = Histogram('http_request_latency_seconds', 'HTTP request latency', ['endpoint'])
IDENTITY_CALL_COUNT = Counter(
    'identity_toolkit_calls_total', 'Calls made to Identity Toolkit / Secure Token', ['operation', 'outcome']
)
IDENTITY_CALL_LATENCY = Histogram(
    'identity_toolkit_call_latency_seconds', 'Identity Toolkit / Secure Token call latency', ['operation']
)

class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        endpoint = request.url.path
        REQUEST_LATENCY.labels(endpoint=endpoint).observe(process_time)
        REQUEST_COUNT.labels(method=request.method, endpoint=endpoint, http_status=response.status_code).inc()
        return response

def record_identity_call(operation: str, outcome: str, elapsed: float) -> None:
    IDENTITY_CALL_COUNT.labels(operation=operation, outcome=outcome).inc()
    IDENTITY_CALL_LATENCY.labels(operation=operation).observe(elapsed)

def metrics_endpoint():
    return StarletteResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)
