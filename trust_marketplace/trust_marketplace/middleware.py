import logging
from django.utils import timezone

logger = logging.getLogger('audit')

AUDIT_MARKER = '_audit_logged'


class RequestAuditMiddleware:
    """
    Writes one audit line per request once the view has produced its response.
    The response is passed through untouched; a marker on the request keeps the
    entry from being written twice when the middleware is re-entered.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)
        self.after_response(request, response)
        return response

    def after_response(self, request, response):
        if getattr(request, AUDIT_MARKER, False):
            return
        setattr(request, AUDIT_MARKER, True)

        user = getattr(request, 'user', None)
        actor = user if user is not None and user.is_authenticated else 'Anonymous'

        logger.info(
            "[%s] %s - %s %s -> %s - IP: %s",
            timezone.now().isoformat(),
            actor,
            request.method,
            request.get_full_path(),
            response.status_code,
            self.get_client_ip(request),
        )

    def get_client_ip(self, request):
        forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if forwarded_for:
            return forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')
