"""
URL configuration for the credit ledger service.

Routes include administration, the credits API, health checks, and metrics endpoints.
"""
import os
from prometheus_client import CollectorRegistry, multiprocess, generate_latest, REGISTRY
from django.contrib import admin
from django.urls import path, include
from django.http import HttpResponse

# Initialize Prometheus registry
# Use multiprocess collector only if PROMETHEUS_MULTIPROC_DIR is set (production)
# Otherwise use default registry (development)
if os.environ.get('PROMETHEUS_MULTIPROC_DIR'):
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
else:
    registry = REGISTRY


def health_check(request):
    return HttpResponse("OK", content_type="text/plain")


def credits_metrics(request):
    payload = generate_latest(registry)
    return HttpResponse(payload, content_type="text/plain; version=0.0.4")


urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/credits/', include('credits.urls', namespace='credits')),
    path('health/', health_check, name='health_check'),
    path('metrics/credits/', credits_metrics, name='credits_metrics'),
]
