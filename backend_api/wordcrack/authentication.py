from __future__ import annotations

from rest_framework import authentication, exceptions

USER_HEADER = "HTTP_X_USER_ID"


class GatewayUser:
    """Opaque player identity asserted by the upstream auth gateway."""

    is_authenticated = True
    is_anonymous = False

    def __init__(self, user_id: str):
        self.id = user_id
        self.pk = user_id

    def __str__(self) -> str:  # pragma: no cover
        return self.id


# PUBLIC_INTERFACE
class GatewayUserAuthentication(authentication.BaseAuthentication):
    """Authenticate requests by the X-User-Id header.

    Token verification happens in the gateway in front of this service; the
    header is only trusted because clients cannot reach the service directly.
    Requests without the header stay anonymous.
    """

    def authenticate(self, request):
        raw = request.META.get(USER_HEADER)
        if raw is None:
            return None
        user_id = raw.strip()
        if not user_id or len(user_id) > 64:
            raise exceptions.AuthenticationFailed("Invalid X-User-Id header.")
        return GatewayUser(user_id), None

    def authenticate_header(self, request):
        return "Gateway"
