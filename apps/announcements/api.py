# apps/announcements/api.py
from django.db.models import Exists, OuterRef, Q
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from drf_spectacular.types import OpenApiTypes

from apps.audit.utils import log_event
from apps.rbac.permissions import PolicyPermission
from apps.rbac.policy import is_allowed
from apps.rbac.utils import request_caller

from .models import Announcement, AnnouncementRead
from .serializers import AnnouncementSerializer
from .services import archive_announcement, mark_announcement_read, publish_announcement


@extend_schema_view(
    list=extend_schema(
        summary="Announcements for me",
        description=(
            "By default only announcements currently active for the caller. "
            "Announcers may pass `all=true` to see every announcement, drafts included."
        ),
        parameters=[
            OpenApiParameter(name="all", required=False, type=OpenApiTypes.BOOL),
            OpenApiParameter(name="status", required=False, type=OpenApiTypes.STR),
            OpenApiParameter(name="q", description="search in title/content", required=False, type=OpenApiTypes.STR),
        ],
    ),
    create=extend_schema(summary="Create announcement (draft)"),
)
class AnnouncementViewSet(viewsets.ModelViewSet):
    schema_tags = ["Announcements"]
    serializer_class = AnnouncementSerializer
    permission_classes = [IsAuthenticated, PolicyPermission]
    policy_resource = "announcement"
    policy_actions = {"publish": "publish", "archive": "change", "mark_read": "read"}
    filter_backends = [SearchFilter]
    search_fields = ["title", "content"]

    def _sees_everything(self) -> bool:
        return is_allowed(request_caller(self.request), "manage", "announcement")

    def get_queryset(self):
        user = self.request.user
        base = Announcement.objects.select_related("author").annotate(
            read_by_caller=Exists(AnnouncementRead.objects.filter(announcement=OuterRef("pk"), user=user))
        )
        show_all = self.request.query_params.get("all", "").lower() in {"1", "true", "yes"}

        if self.action == "list" and not (show_all and self._sees_everything()):
            ids = Announcement.objects.active_for(user).values("pk")
            return base.filter(pk__in=ids).order_by("-is_pinned", "-start_date", "-id")

        if self.action != "list" and not self._sees_everything():
            ids = Announcement.objects.active_for(user).values("pk")
            base = base.filter(Q(pk__in=ids) | Q(author=user))

        if self.request.query_params.get("status"):
            base = base.filter(status=self.request.query_params["status"])
        return base

    def perform_create(self, serializer):
        ann = serializer.save(author=self.request.user)
        log_event(self.request, "announcement.create", "Announcement", ann.id)

    def perform_update(self, serializer):
        ann = serializer.save()
        log_event(self.request, "announcement.update", "Announcement", ann.id)

    def perform_destroy(self, instance):
        log_event(self.request, "announcement.delete", "Announcement", instance.id)
        instance.delete()

    def _respond(self, ann):
        return Response(AnnouncementSerializer(self.get_queryset().get(pk=ann.pk), context={"request": self.request}).data)

    @extend_schema(summary="Publish and notify the audience", request=None, responses={200: AnnouncementSerializer})
    @action(detail=True, methods=["post"], url_path="publish")
    def publish(self, request, pk=None):
        try:
            ann = publish_announcement(request_caller(request), self.get_object())
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        log_event(request, "announcement.publish", "Announcement", ann.id)
        return self._respond(ann)

    @extend_schema(summary="Archive", request=None, responses={200: AnnouncementSerializer})
    @action(detail=True, methods=["post"], url_path="archive")
    def archive(self, request, pk=None):
        ann = archive_announcement(request_caller(request), self.get_object())
        log_event(request, "announcement.archive", "Announcement", ann.id)
        return self._respond(ann)

    @extend_schema(summary="Mark as read by me", request=None, responses={200: AnnouncementSerializer})
    @action(detail=True, methods=["post"], url_path="mark-read")
    def mark_read(self, request, pk=None):
        ann = self.get_object()
        mark_announcement_read(request_caller(request), ann)
        return self._respond(ann)
