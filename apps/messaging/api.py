# apps/messaging/api.py
from django.db.models import Prefetch
from django.shortcuts import get_object_or_404
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from drf_spectacular.utils import OpenApiParameter, extend_schema
from drf_spectacular.types import OpenApiTypes

from apps.audit.utils import log_event
from apps.rbac.utils import request_caller

from .models import Message, MessageRecipient
from .serializers import MessageSerializer, SendMessageSerializer, UpdateMessageSerializer
from .services import (
    FOLDERS,
    delete_message,
    mailbox,
    open_message,
    send_message,
    thread_messages,
    update_message,
)


def _with_recipients(qs):
    return qs.prefetch_related(
        Prefetch("recipients", queryset=MessageRecipient.objects.select_related("user"))
    )


class MessageViewSet(viewsets.GenericViewSet):
    """
    Mailbox endpoints. Every access check runs in the service layer with the
    caller passed explicitly.
    """
    schema_tags = ["Messages"]
    permission_classes = [IsAuthenticated]
    queryset = Message.objects.select_related("sender")
    serializer_class = MessageSerializer
    filter_backends = []

    def _get(self, pk) -> Message:
        return get_object_or_404(self.get_queryset(), pk=pk)

    def _data(self, message, request):
        fresh = _with_recipients(Message.objects.select_related("sender")).filter(pk=message.pk).first()
        return MessageSerializer(fresh, context={"request": request}).data

    @extend_schema(
        summary="My mailbox",
        parameters=[
            OpenApiParameter(name="folder", required=False, type=OpenApiTypes.STR, enum=list(FOLDERS)),
            OpenApiParameter(name="q", description="search subject/body/sender", required=False, type=OpenApiTypes.STR),
        ],
        responses={200: MessageSerializer(many=True)},
    )
    def list(self, request):
        folder = request.query_params.get("folder", "inbox")
        try:
            qs = mailbox(request_caller(request), folder, request.query_params.get("q", ""))
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        qs = _with_recipients(qs)

        page = self.paginate_queryset(qs)
        data = MessageSerializer(page, many=True, context={"request": request}).data
        return self.get_paginated_response(data)

    @extend_schema(summary="Send a message or save a draft", request=SendMessageSerializer, responses={201: MessageSerializer})
    def create(self, request):
        ser = SendMessageSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        vd = ser.validated_data
        try:
            message = send_message(
                request_caller(request),
                vd["recipients"],
                vd["subject"],
                vd["body"],
                is_draft=vd["is_draft"],
                parent_message_id=vd.get("parent_message_id"),
                labels=vd["labels"],
                scheduled_at=vd.get("scheduled_at"),
                metadata=vd["metadata"],
            )
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        log_event(request, "message.send", "Message", message.id, metadata={"draft": message.is_draft})
        return Response(self._data(message, request), status=status.HTTP_201_CREATED)

    @extend_schema(summary="Open a message (marks it read for me)", responses={200: MessageSerializer})
    def retrieve(self, request, pk=None):
        message = open_message(request_caller(request), self._get(pk))
        return Response(self._data(message, request))

    @extend_schema(summary="Update a message", request=UpdateMessageSerializer, responses={200: MessageSerializer})
    def partial_update(self, request, pk=None):
        ser = UpdateMessageSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        try:
            message = update_message(request_caller(request), self._get(pk), ser.validated_data)
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        if message.pk is None:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return Response(self._data(message, request))

    @extend_schema(
        summary="Delete a message",
        description="Recipients remove it from their mailbox. Senders may pass `hard_delete=true` to remove it for everyone.",
        parameters=[OpenApiParameter(name="hard_delete", required=False, type=OpenApiTypes.BOOL)],
        responses={204: None},
    )
    def destroy(self, request, pk=None):
        message = self._get(pk)
        message_id = message.pk
        hard = request.query_params.get("hard_delete", "").lower() in {"1", "true", "yes"}
        removed = delete_message(request_caller(request), message, hard=hard)
        log_event(request, "message.delete", "Message", message_id, metadata={"hard": hard, "removed": removed})
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(summary="Whole conversation, oldest first", responses={200: MessageSerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="thread")
    def thread(self, request, pk=None):
        qs = _with_recipients(thread_messages(request_caller(request), self._get(pk)))
        return Response(MessageSerializer(qs, many=True, context={"request": request}).data)
