"""JWT token endpoints for API clients.

Accounts are managed through the Django admin; these views only issue and
refresh tokens for existing users.
"""

import logging

from django.urls import path
from drf_spectacular.utils import extend_schema
from rest_framework.throttling import ScopedRateThrottle
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

logger = logging.getLogger("auth")


def _log(action: str, request, status_code: int) -> None:
    logger.info(
        "auth.%s",
        action,
        extra={
            "event": f"auth.{action}",
            "ip": request.META.get("REMOTE_ADDR"),
            "status": "success" if status_code == 200 else "failed",
        },
    )


class SignInView(TokenObtainPairView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "signin"

    @extend_schema(tags=["Auth Endpoints"])
    def post(self, request, *args, **kwargs):
        resp = super().post(request, *args, **kwargs)
        _log("signin", request, resp.status_code)
        return resp


class RefreshView(TokenRefreshView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "token_refresh"

    @extend_schema(tags=["Auth Endpoints"])
    def post(self, request, *args, **kwargs):
        resp = super().post(request, *args, **kwargs)
        _log("token_refresh", request, resp.status_code)
        return resp


urlpatterns = [
    path("signin/", SignInView.as_view(), name="signin"),
    path("refresh/", RefreshView.as_view(), name="token_refresh"),
]


# EOF
