import logging
import time

from django.db import DatabaseError, connection
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common.checks import configuration_warnings

logger = logging.getLogger(__name__)


def check_database():
    start_time = time.time()
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError:
        logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": round((time.time() - start_time) * 1000, 2), "error": "Database error"}
    return {"status": "healthy", "latency_ms": round((time.time() - start_time) * 1000, 2)}


class HealthView(APIView):
    """Liveness plus the configuration warning banner."""

    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        database = check_database()
        warnings = configuration_warnings()
        if database["status"] != "healthy":
            overall = "unhealthy"
        elif warnings:
            overall = "degraded"
        else:
            overall = "healthy"
        return Response(
            {
                "status": overall,
                "warnings": warnings,
                "checks": {"database": database},
            },
            status=503 if overall == "unhealthy" else 200,
        )
