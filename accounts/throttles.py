from rest_framework.throttling import SimpleRateThrottle


class LoginRateThrottle(SimpleRateThrottle):
    scope = "login"

    def get_cache_key(self, request, view):
        return self.get_ident(request)


class AccessRequestThrottle(SimpleRateThrottle):
    scope = "access_request"

    def get_cache_key(self, request, view):
        return self.get_ident(request)
