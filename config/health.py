import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.views.decorators.http import require_GET

from common.exceptions import StoreUnavailable


logger = logging.getLogger(__name__)


@require_GET
def health_check(request):
    try:
        connection.ensure_connection()
    except DatabaseError as exc:
        logger.error("Health check could not reach the database: %s", exc)
        error = StoreUnavailable()
        payload = {**error.to_dict(), "status": "degraded", "database": "unavailable"}
        return JsonResponse(payload, status=error.status_code)

    return JsonResponse(
        {
            "success": True,
            "message": "Intranet HR API is running",
            "status": "ok",
            "database": "ok",
        }
    )
