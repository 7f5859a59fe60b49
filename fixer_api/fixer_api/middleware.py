import logging
import time

logger = logging.getLogger('audit')


class UserActivityLoggingMiddleWare:
    """Writes one audit line per request: who, what, outcome and how long it took."""
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.monotonic()
        response = self.get_response(request)
        elapsed_ms = (time.monotonic() - started) * 1000

        user = getattr(request, 'user', None)
        actor = user if user is not None and user.is_authenticated else 'Anonymous'
        logger.info(
            f"{actor} - {request.method} {request.get_full_path()} -> {response.status_code} "
            f"({elapsed_ms:.0f} ms) - IP: {self.get_client_ip(request)}"
        )

        return response

    def get_client_ip(self, request):
        forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if forwarded_for:
            return forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')
