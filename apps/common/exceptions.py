from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler


class DomainConflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The request conflicts with the current state."
    default_code = "conflict"

    def __init__(self, detail=None, code=None, fields=None):
        super().__init__(detail=detail, code=code)
        self.fields = fields or {}


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        return response

    if isinstance(response.data, dict):
        detail = response.data.get("detail", "Request failed")
        fields = {k: v for k, v in response.data.items() if k != "detail"}
    else:
        detail = "Request failed"
        fields = {}
    fields.update(getattr(exc, "fields", {}) or {})

    code = getattr(exc, "default_code", "error")
    if isinstance(exc, APIException) and not isinstance(exc.detail, (dict, list)):
        code = getattr(exc.detail, "code", None) or code

    response.data = {
        "code": code,
        "detail": detail,
        "fields": fields,
    }
    return response
