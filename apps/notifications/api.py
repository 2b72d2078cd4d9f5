# apps/notifications/api.py
from rest_framework import mixins, serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view, inline_serializer
from drf_spectacular.types import OpenApiTypes

from apps.rbac.permissions import PolicyPermission

from .models import Notification
from .serializers import MarkReadSerializer, NotificationSerializer


@extend_schema_view(
    list=extend_schema(
        summary="My notifications",
        parameters=[
            OpenApiParameter(name="unread", description="only unread when true", required=False, type=OpenApiTypes.BOOL),
            OpenApiParameter(name="type", required=False, type=OpenApiTypes.STR),
        ],
    ),
    partial_update=extend_schema(summary="Mark one notification read/unread"),
    destroy=extend_schema(summary="Delete one notification"),
)
class NotificationViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    I only ever show the caller's own, unexpired notifications.
    """
    schema_tags = ["Notifications"]
    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated, PolicyPermission]
    policy_resource = "notification"
    policy_actions = {"unread_count": "list", "mark_read": "list", "clear": "list"}
    http_method_names = ["get", "patch", "post", "delete", "head", "options"]
    filter_backends = []

    def get_queryset(self):
        qs = Notification.objects.filter(user=self.request.user).live()
        params = self.request.query_params
        if params.get("unread", "").lower() in {"1", "true", "yes"}:
            qs = qs.unread()
        if params.get("type"):
            qs = qs.filter(type=params["type"])
        return qs

    @extend_schema(
        summary="Unread count",
        responses={200: inline_serializer("UnreadCount", {"unread": serializers.IntegerField()})},
    )
    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        n = Notification.objects.filter(user=request.user).live().unread().count()
        return Response({"unread": n})

    @extend_schema(
        summary="Mark notifications read (by ids or all)",
        request=MarkReadSerializer,
        responses={200: inline_serializer("MarkedRead", {"updated": serializers.IntegerField()})},
    )
    @action(detail=False, methods=["post"], url_path="mark-read")
    def mark_read(self, request):
        ser = MarkReadSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        qs = Notification.objects.filter(user=request.user)
        if not ser.validated_data.get("all"):
            qs = qs.filter(pk__in=ser.validated_data["ids"])
        return Response({"updated": qs.mark_read()})

    @extend_schema(summary="Delete all read notifications", request=None, responses={204: None})
    @action(detail=False, methods=["post"], url_path="clear")
    def clear(self, request):
        Notification.objects.filter(user=request.user, is_read=True).delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
