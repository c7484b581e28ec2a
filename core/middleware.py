from django.core.exceptions import ValidationError
from django.core.validators import validate_ipv46_address


def valid_ip(value) -> str | None:
    value = (value or '').strip()
    try:
        validate_ipv46_address(value)
    except ValidationError:
        return None
    return value


class ClientIPMiddleware:
    """Resolve the caller's address once so audit rows see the real client behind a proxy."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.client_ip = self.resolve(request.META)
        return self.get_response(request)

    @staticmethod
    def resolve(meta) -> str | None:
        # headers are client controlled; anything that is not an address is skipped
        forwarded = meta.get('HTTP_X_FORWARDED_FOR', '')
        for candidate in (forwarded.split(',')[0], meta.get('HTTP_X_REAL_IP'), meta.get('REMOTE_ADDR')):
            ip = valid_ip(candidate)
            if ip:
                return ip
        return None
