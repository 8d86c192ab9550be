from django.urls import path

from .views import (
    LineRecountView,
    SessionApproveView,
    SessionCancelView,
    SessionDetailView,
    SessionLinesView,
    SessionListCreateView,
    SessionSubmitView,
)

urlpatterns = [
    path("sessions/", SessionListCreateView.as_view(), name="count-session-list"),
    path("sessions/<int:session_id>/", SessionDetailView.as_view(), name="count-session-detail"),
    path("sessions/<int:session_id>/lines/", SessionLinesView.as_view(), name="count-session-lines"),
    path(
        "sessions/<int:session_id>/lines/<int:line_id>/recount/",
        LineRecountView.as_view(),
        name="count-line-recount",
    ),
    path("sessions/<int:session_id>/submit/", SessionSubmitView.as_view(), name="count-session-submit"),
    path("sessions/<int:session_id>/approve/", SessionApproveView.as_view(), name="count-session-approve"),
    path("sessions/<int:session_id>/cancel/", SessionCancelView.as_view(), name="count-session-cancel"),
]

# EOF
