from django.conf import settings
from rest_framework.throttling import SimpleRateThrottle


class AddressPathRateThrottle(SimpleRateThrottle):
    """
    Fixed-window limiter keyed by client address and request path, so one
    noisy endpoint does not lock a client out of the others.

    Window and cap come from RATE_LIMIT_WINDOW (seconds) / RATE_LIMIT_MAX and
    are read per request.
    """
    scope = 'address_path'

    def get_rate(self):
        return f"{settings.RATE_LIMIT_MAX}/{settings.RATE_LIMIT_WINDOW}"

    def parse_rate(self, rate):
        if rate is None:
            return (None, None)
        num, window = rate.split('/')
        return (int(num), int(window))

    def allow_request(self, request, view):
        if not getattr(settings, 'RATE_LIMIT_ENABLED', True):
            return True
        self.rate = self.get_rate()
        self.num_requests, self.duration = self.parse_rate(self.rate)
        return super().allow_request(request, view)

    def get_cache_key(self, request, view):
        return self.cache_format % {
            'scope': self.scope,
            'ident': f"{self.get_ident(request)}:{request.path}",
        }


class LoginRateThrottle(SimpleRateThrottle):
    rate = '5/minute'
    scope = 'auth_login'

    def get_cache_key(self, request, view):
        if not request.data.get('email'):
            return None

        return self.cache_format % {
            'scope': self.scope,
            'ident': str(request.data.get('email')).lower()
        }
