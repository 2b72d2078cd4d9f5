# apps/departments/api.py
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from drf_spectacular.types import OpenApiTypes

from apps.audit.utils import log_event
from apps.rbac.permissions import PolicyPermission

from .models import Department
from .serializers import DepartmentSerializer, MemberChangeSerializer


@extend_schema_view(
    list=extend_schema(
        summary="List departments",
        parameters=[
            OpenApiParameter(name="q", description="search in name/description", required=False, type=OpenApiTypes.STR),
            OpenApiParameter(name="active", required=False, type=OpenApiTypes.BOOL),
        ],
    ),
    create=extend_schema(summary="Create department (admin)"),
    partial_update=extend_schema(summary="Update department (admin or head)"),
    update=extend_schema(summary="Replace department (admin or head)"),
    destroy=extend_schema(summary="Delete department (admin)"),
)
class DepartmentViewSet(viewsets.ModelViewSet):
    """
    Everyone signed in can read; admins create/delete; heads edit their own.
    """
    schema_tags = ["Departments"]
    queryset = Department.objects.select_related("head").with_member_count()
    serializer_class = DepartmentSerializer
    permission_classes = [IsAuthenticated, PolicyPermission]
    policy_resource = "department"
    policy_actions = {"add_member": "manage_members", "remove_member": "manage_members"}
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ["name", "description"]
    ordering_fields = ["name", "created_at"]
    ordering = ["name"]

    def get_queryset(self):
        qs = super().get_queryset()
        active = self.request.query_params.get("active")
        if active is not None:
            qs = qs.filter(is_active=active.lower() in {"1", "true", "yes"})
        return qs

    def perform_create(self, serializer):
        dept = serializer.save()
        log_event(self.request, "department.create", "Department", dept.id)

    def perform_update(self, serializer):
        dept = serializer.save()
        log_event(self.request, "department.update", "Department", dept.id)

    def perform_destroy(self, instance):
        log_event(self.request, "department.delete", "Department", instance.id)
        instance.delete()

    def _fresh(self, dept):
        return self.get_queryset().get(pk=dept.pk)

    @extend_schema(summary="Add a member", request=MemberChangeSerializer, responses={200: DepartmentSerializer})
    @action(detail=True, methods=["post"], url_path="add-member")
    def add_member(self, request, pk=None):
        dept = self.get_object()
        ser = MemberChangeSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = ser.validated_data["user"]
        dept.members.add(user)
        log_event(request, "department.member_add", "Department", dept.id, metadata={"user": user.id})
        return Response(DepartmentSerializer(self._fresh(dept)).data)

    @extend_schema(summary="Remove a member", request=MemberChangeSerializer, responses={200: DepartmentSerializer})
    @action(detail=True, methods=["post"], url_path="remove-member")
    def remove_member(self, request, pk=None):
        dept = self.get_object()
        ser = MemberChangeSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = ser.validated_data["user"]
        if dept.is_department_head(user):
            return Response(
                {"detail": "The department head cannot be removed; assign a new head first."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        dept.members.remove(user)
        log_event(request, "department.member_remove", "Department", dept.id, metadata={"user": user.id})
        return Response(DepartmentSerializer(self._fresh(dept)).data)
