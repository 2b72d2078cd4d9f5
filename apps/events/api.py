# apps/events/api.py
from django.contrib.auth import get_user_model
from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from rest_framework import serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from drf_spectacular.types import OpenApiTypes

from apps.audit.utils import log_event
from apps.rbac.permissions import PolicyPermission
from apps.rbac.policy import ATTENDANCE_MARKERS, authorize
from apps.rbac.utils import has_role, request_caller

from .models import Attendance, Event
from .serializers import (
    AttendanceSerializer,
    AttendanceSummarySerializer,
    AttendeeSerializer,
    EventSerializer,
)
from .services import (
    RegistrationError,
    attendance_summary,
    mark_attendance,
    register_attendee,
    unregister_attendee,
)


@extend_schema_view(
    list=extend_schema(
        summary="List events (paginated)",
        description="Filters: `status`, `date_from`, `date_to`, `organizer_id`, `department_id`, and `q`.",
        parameters=[
            OpenApiParameter(name="status", required=False, type=OpenApiTypes.STR),
            OpenApiParameter(name="date_from", required=False, type=OpenApiTypes.DATETIME),
            OpenApiParameter(name="date_to", required=False, type=OpenApiTypes.DATETIME),
            OpenApiParameter(name="organizer_id", required=False, type=OpenApiTypes.INT),
            OpenApiParameter(name="department_id", required=False, type=OpenApiTypes.INT),
            OpenApiParameter(name="q", description="search in title/description/location", required=False, type=OpenApiTypes.STR),
        ],
    ),
    create=extend_schema(summary="Create event", description="The caller becomes the organizer."),
    destroy=extend_schema(summary="Delete event (organizer or admin)"),
)
class EventViewSet(viewsets.ModelViewSet):
    """
    I manage events plus self-service registration.
    """
    schema_tags = ["Events"]
    queryset = Event.objects.select_related("organizer", "department").annotate(
        n_attendees=Count("attendees", distinct=True)
    )
    serializer_class = EventSerializer
    permission_classes = [IsAuthenticated, PolicyPermission]
    policy_resource = "event"
    policy_actions = {
        "register": "register",
        "unregister": "register",
        "attendees": "view",
        "attendance_summary": "view",
    }
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ["title", "description", "location"]
    ordering_fields = ["start", "end", "status", "created_at"]
    ordering = ["start", "id"]

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        df = parse_datetime(params.get("date_from") or "")
        dt = parse_datetime(params.get("date_to") or "")
        if df:
            qs = qs.filter(end__gte=df)
        if dt:
            qs = qs.filter(start__lte=dt)
        if params.get("organizer_id"):
            qs = qs.filter(organizer_id=params["organizer_id"])
        if params.get("department_id"):
            qs = qs.filter(department_id=params["department_id"])
        return qs

    def perform_create(self, serializer):
        event = serializer.save(organizer=self.request.user)
        log_event(self.request, "event.create", "Event", event.id)

    def perform_update(self, serializer):
        event = serializer.save()
        log_event(self.request, "event.update", "Event", event.id)

    def perform_destroy(self, instance):
        log_event(self.request, "event.delete", "Event", instance.id)
        instance.delete()

    @extend_schema(summary="Register the caller for this event", request=None, responses={200: EventSerializer})
    @action(detail=True, methods=["post"], url_path="register")
    def register(self, request, pk=None):
        event = self.get_object()
        try:
            register_attendee(event, request.user)
        except RegistrationError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        log_event(request, "event.register", "Event", event.id)
        return Response(EventSerializer(self.get_queryset().get(pk=event.pk)).data)

    @extend_schema(summary="Withdraw the caller's registration", request=None, responses={200: EventSerializer})
    @action(detail=True, methods=["post"], url_path="unregister")
    def unregister(self, request, pk=None):
        event = self.get_object()
        unregister_attendee(event, request.user)
        log_event(request, "event.unregister", "Event", event.id)
        return Response(EventSerializer(self.get_queryset().get(pk=event.pk)).data)

    @extend_schema(summary="List registered attendees", responses={200: AttendeeSerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="attendees")
    def attendees(self, request, pk=None):
        event = self.get_object()
        users = event.attendees.order_by("username").values("id", "username", "display_name", "email")
        return Response(AttendeeSerializer(users, many=True).data)

    @extend_schema(summary="Attendance counts for this event", responses={200: AttendanceSummarySerializer})
    @action(detail=True, methods=["get"], url_path="attendance-summary")
    def attendance_summary(self, request, pk=None):
        event = self.get_object()
        return Response(AttendanceSummarySerializer(attendance_summary(event)).data)


@extend_schema_view(
    list=extend_schema(
        summary="List attendance records",
        description=(
            "Attendance managers see everything; organizers see their events; "
            "everyone else sees their own records. Filters: `event_id`, `user_id`, `status`."
        ),
        parameters=[
            OpenApiParameter(name="event_id", required=False, type=OpenApiTypes.INT),
            OpenApiParameter(name="user_id", required=False, type=OpenApiTypes.INT),
            OpenApiParameter(name="status", required=False, type=OpenApiTypes.STR),
        ],
    ),
    create=extend_schema(
        summary="Mark attendance",
        description="Creates or updates the (event, user) record. Organizers and attendance managers only.",
    ),
)
class AttendanceViewSet(viewsets.ModelViewSet):
    schema_tags = ["Attendance"]
    queryset = Attendance.objects.select_related("event", "user", "marked_by").all()
    serializer_class = AttendanceSerializer
    permission_classes = [IsAuthenticated, PolicyPermission]
    policy_resource = "attendance"
    policy_actions = {"check_out": "change", "mine": "list"}
    filter_backends = [OrderingFilter]
    ordering_fields = ["check_in", "status", "created_at"]
    ordering = ["-check_in", "id"]

    def get_queryset(self):
        qs = super().get_queryset()
        user = self.request.user
        if not has_role(user, *ATTENDANCE_MARKERS):
            qs = qs.filter(Q(user=user) | Q(event__organizer=user))
        params = self.request.query_params
        if params.get("event_id"):
            qs = qs.filter(event_id=params["event_id"])
        if params.get("user_id"):
            qs = qs.filter(user_id=params["user_id"])
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        return qs

    def create(self, request, *args, **kwargs):
        ser = AttendanceSerializer(data=request.data)
        # get_or_create handles the duplicate pair, so skip the unique-together validator.
        ser.validators = []
        ser.is_valid(raise_exception=True)
        vd = dict(ser.validated_data)
        event = vd.pop("event")
        user = vd.pop("user")
        record = mark_attendance(request_caller(request), event=event, user=user, **vd)
        log_event(request, "attendance.mark", "Attendance", record.id, metadata={"status": record.status})
        return Response(AttendanceSerializer(record).data, status=status.HTTP_201_CREATED)

    def perform_update(self, serializer):
        record = serializer.save(marked_by=self.request.user)
        log_event(self.request, "attendance.update", "Attendance", record.id)

    def perform_destroy(self, instance):
        log_event(self.request, "attendance.delete", "Attendance", instance.id)
        instance.delete()

    @extend_schema(summary="Stamp check-out now", request=None, responses={200: AttendanceSerializer})
    @action(detail=True, methods=["post"], url_path="check-out")
    def check_out(self, request, pk=None):
        record = self.get_object()
        if record.check_out:
            return Response({"detail": "Already checked out."}, status=status.HTTP_400_BAD_REQUEST)
        record.check_out = max(timezone.now(), record.check_in)
        record.save(update_fields=["check_out", "updated_at"])
        log_event(request, "attendance.check_out", "Attendance", record.id)
        return Response(AttendanceSerializer(record).data)

    @extend_schema(summary="The caller's own attendance history", responses={200: AttendanceSerializer(many=True)})
    @action(detail=False, methods=["get"], url_path="mine")
    def mine(self, request):
        qs = Attendance.objects.select_related("event").filter(user=request.user).order_by("-check_in")
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(AttendanceSerializer(page, many=True).data)
        return Response(AttendanceSerializer(qs, many=True).data)
