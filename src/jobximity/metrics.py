"""
Prometheus metrics for monitoring API performance and matching behavior.
"""
from prometheus_client import Counter, Histogram, Gauge

# Request metrics
location_updates_total = Counter(
    'location_updates_total',
    'Total number of location updates received',
    ['status']
)

match_requests_total = Counter(
    'match_requests_total',
    'Total number of match requests by resulting status',
    ['status']
)

# Latency metrics
request_duration_seconds = Histogram(
    'request_duration_seconds',
    'Request latency in seconds',
    ['endpoint']
)

# Matching metrics
proximity_checks_total = Counter(
    'proximity_checks_total',
    'Proximity decisions by coarse filter outcome and final result',
    ['coarse', 'within_radius']
)

nearby_candidates = Histogram(
    'nearby_candidates',
    'Candidates returned by the cell index before exact verification',
    buckets=(0, 1, 5, 10, 25, 50, 100, 250, 500, 1000)
)

search_area_cells = Gauge(
    'search_area_cells',
    'Number of cells in the most recent search area'
)

# Redis metrics
redis_operations_total = Counter(
    'redis_operations_total',
    'Total Redis operations',
    ['operation', 'status']
)
