"""Count session API.

Non-staff readers get blind serializers: no system quantity, no
differences, no discrepancy statistics.
"""

from common.exceptions import InventoryError, error_response
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema
from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from . import selectors, services
from .serializers import (
    BlindCountLineSerializer,
    BlindCountSessionSerializer,
    CountEntryBatchSerializer,
    CountLineSerializer,
    CountSessionCreateSerializer,
    CountSessionSerializer,
    RecountSerializer,
)


def _session_serializer(user):
    return CountSessionSerializer if user.is_staff else BlindCountSessionSerializer


def _line_serializer(user):
    return CountLineSerializer if user.is_staff else BlindCountLineSerializer


class SessionListCreateView(generics.ListAPIView):
    throttle_scope = "counts"

    def get_permissions(self):
        if self.request.method == "POST":
            return [permissions.IsAdminUser()]
        return [permissions.IsAuthenticated()]

    def get_serializer_class(self):
        return _session_serializer(self.request.user)

    def get_queryset(self):
        params = self.request.query_params
        return selectors.list_sessions(status=params.get("status"), session_type=params.get("session_type"))

    @extend_schema(
        tags=["Count Endpoints"],
        summary="List count sessions",
        parameters=[
            OpenApiParameter(name="status", required=False, type=str),
            OpenApiParameter(name="session_type", required=False, type=str),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @extend_schema(
        tags=["Count Endpoints"],
        summary="Create count session (staff)",
        description="Freezes one line per inventory record matching the scope and opens the session.",
        request=CountSessionCreateSerializer,
        responses={201: CountSessionSerializer},
        examples=[
            OpenApiExample(
                "Zone cycle count",
                value={"session_type": "cycle", "scope": {"zones": ["A"], "abc_classes": ["A"]}},
                request_only=True,
            )
        ],
    )
    def post(self, request):
        serializer = CountSessionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            session = services.create_session(actor=request.user, **serializer.validated_data)
        except InventoryError as exc:
            return error_response(exc)
        return Response(CountSessionSerializer(session).data, status=status.HTTP_201_CREATED)


class SessionDetailView(APIView):
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "counts"

    @extend_schema(tags=["Count Endpoints"], summary="Get count session", responses={200: CountSessionSerializer})
    def get(self, request, session_id: int):
        try:
            session = selectors.get_session(session_id)
        except InventoryError as exc:
            return error_response(exc)
        return Response(_session_serializer(request.user)(session).data)


class SessionLinesView(generics.ListAPIView):
    """List lines (blind for non-staff) or enter counted quantities."""

    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "counts"

    def get_throttles(self):
        if self.request.method == "POST":
            self.throttle_scope = "counts_write"
        return super().get_throttles()

    def get_serializer_class(self):
        return _line_serializer(self.request.user)

    def get_queryset(self):
        session = selectors.get_session(self.kwargs["session_id"])
        state = self.request.query_params.get("status")
        if state == "discrepancy" and not self.request.user.is_staff:
            # Filtering by discrepancy would reveal which lines differ
            state = None
        return selectors.list_lines(session, state=state)

    @extend_schema(
        tags=["Count Endpoints"],
        summary="List count lines",
        description="Filter with status=counted|uncounted|recount (staff also: discrepancy).",
        parameters=[OpenApiParameter(name="status", required=False, type=str)],
    )
    def get(self, request, *args, **kwargs):
        try:
            return super().get(request, *args, **kwargs)
        except InventoryError as exc:
            return error_response(exc)

    @extend_schema(
        tags=["Count Endpoints"],
        summary="Enter counts",
        request=CountEntryBatchSerializer,
        examples=[
            OpenApiExample(
                "Counts",
                value={"lines": [{"line_id": 12, "counted_qty": 7}, {"stock_item_id": 3, "location": "A1", "counted_qty": 0}]},
                request_only=True,
            )
        ],
    )
    def post(self, request, session_id: int):
        serializer = CountEntryBatchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            lines = services.enter_counts(
                session_id=session_id, entries=serializer.validated_data["lines"], actor=request.user
            )
        except InventoryError as exc:
            return error_response(exc)
        return Response(_line_serializer(request.user)(lines, many=True).data)


class SessionSubmitView(APIView):
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "counts_write"

    @extend_schema(tags=["Count Endpoints"], summary="Submit count session for review", request=None)
    def post(self, request, session_id: int):
        try:
            session = services.submit_session(session_id=session_id, actor=request.user)
        except InventoryError as exc:
            return error_response(exc)
        return Response(_session_serializer(request.user)(session).data)


class SessionApproveView(APIView):
    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "counts_write"

    @extend_schema(
        tags=["Count Endpoints"],
        summary="Approve count session (staff)",
        description="Posts a receipt or issue per discrepant line and sets inventory records to the counted quantity.",
        request=None,
        responses={200: CountSessionSerializer},
    )
    def post(self, request, session_id: int):
        try:
            session = services.approve_session(session_id=session_id, actor=request.user)
        except InventoryError as exc:
            return error_response(exc)
        return Response(CountSessionSerializer(session).data)


class SessionCancelView(APIView):
    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "counts_write"

    @extend_schema(tags=["Count Endpoints"], summary="Cancel count session (staff)", request=None)
    def post(self, request, session_id: int):
        try:
            session = services.cancel_session(session_id=session_id, actor=request.user)
        except InventoryError as exc:
            return error_response(exc)
        return Response(CountSessionSerializer(session).data)


class LineRecountView(APIView):
    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "counts_write"

    @extend_schema(
        tags=["Count Endpoints"],
        summary="Request recount of a line (staff)",
        request=RecountSerializer,
        responses={200: CountLineSerializer},
    )
    def post(self, request, session_id: int, line_id: int):
        serializer = RecountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            line = services.flag_recount(
                session_id=session_id, line_id=line_id, notes=serializer.validated_data["notes"], actor=request.user
            )
        except InventoryError as exc:
            return error_response(exc)
        return Response(CountLineSerializer(line).data)


# EOF
