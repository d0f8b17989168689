from django.conf import settings
from django.core.checks import Tags, Warning, register

INSECURE_SECRET_KEYS = {"unsafe-dev-key", "change-me", ""}


def configuration_warnings():
    """Return human readable problems with the runtime configuration.

    Nothing here is fatal: the service keeps running with defaults and the
    problems are shown to operators through the health endpoint.
    """
    warnings = []
    raw_url = getattr(settings, "DATABASE_URL_RAW", "")
    url_error = getattr(settings, "DATABASE_URL_ERROR", "")
    if not raw_url:
        warnings.append("DATABASE_URL is not set; using the local SQLite database.")
    elif url_error:
        warnings.append(f"DATABASE_URL is invalid ({url_error}); using the local SQLite database.")
    if settings.SECRET_KEY in INSECURE_SECRET_KEYS:
        warnings.append("DJANGO_SECRET_KEY is missing or insecure; tokens can be forged.")
    return warnings


@register(Tags.security, deploy=False)
def check_runtime_configuration(app_configs, **kwargs):
    return [
        Warning(message, id=f"coinstock.W00{index}")
        for index, message in enumerate(configuration_warnings(), start=1)
    ]
