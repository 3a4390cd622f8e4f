from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Метрики для HTTP запросов
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

# Вход и регистрация
logins_total = Counter('logins_total', 'Login attempts', ['outcome'])
registrations_total = Counter('registrations_total', 'Registration attempts', ['outcome'])

# Связывание пользователь <-> курс
enrollments_total = Counter('enrollments_total', 'Enrollment attempts', ['outcome'])
course_creations_total = Counter('course_creations_total', 'Course creation attempts', ['outcome'])
saga_compensations_total = Counter(
    'saga_compensations_total',
    'Compensating writes after a failed second write',
    ['operation', 'result']
)

def metrics_endpoint():
    """Endpoint для Prometheus метрик"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
