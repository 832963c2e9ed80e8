from rest_framework.throttling import SimpleRateThrottle


class RegistrationRateThrottle(SimpleRateThrottle):
    """
    Limits sign-up attempts per email address. Requests without an email are
    counted against the client address instead.
    """
    scope = 'registration'

    def get_cache_key(self, request, view):
        email = (request.data.get('email') or '').lower().strip()
        ident = email or self.get_ident(request)
        return self.cache_format % {'scope': self.scope, 'ident': ident}
