# apps/accounts/api.py
from django.contrib.auth import update_session_auth_hash
from rest_framework import generics, status, viewsets
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, extend_schema_view
from drf_spectacular.types import OpenApiTypes

from apps.audit.utils import log_event
from apps.rbac.permissions import PolicyPermission

from .models import User
from .serializers import ChangePasswordSerializer, CurrentUserSerializer, RegisterSerializer, UserSerializer


@extend_schema(
    summary="Self-service registration",
    description="I create a plain `user` account. Roles are granted later by an administrator.",
    request=RegisterSerializer,
    responses={201: CurrentUserSerializer},
    examples=[
        OpenApiExample(
            "Register body",
            value={"username": "ada", "email": "ada@example.org", "password": "a-long-passphrase"},
        )
    ],
)
class RegisterView(generics.CreateAPIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    serializer_class = RegisterSerializer

    def create(self, request, *args, **kwargs):
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = ser.save()
        log_event(request, "auth.register", "User", user.id, actor=user)
        return Response(CurrentUserSerializer(user).data, status=status.HTTP_201_CREATED)


@extend_schema(
    summary="Who am I",
    description="I return the authenticated caller with their role and home department.",
    responses={200: CurrentUserSerializer},
)
class WhoAmIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(CurrentUserSerializer(request.user).data)


@extend_schema(
    summary="Change my password",
    request=ChangePasswordSerializer,
    responses={204: None, 400: OpenApiTypes.OBJECT},
)
class ChangePasswordView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        ser = ChangePasswordSerializer(data=request.data, context={"request": request})
        ser.is_valid(raise_exception=True)
        request.user.set_password(ser.validated_data["new_password"])
        request.user.save(update_fields=["password"])
        update_session_auth_hash(request, request.user)
        log_event(request, "auth.password_change", "User", request.user.id)
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    list=extend_schema(
        summary="List users",
        description="Managers and admins. Filters: `role`, `department`, `is_active`, and `q`.",
        parameters=[
            OpenApiParameter(name="role", required=False, type=OpenApiTypes.STR),
            OpenApiParameter(name="department", required=False, type=OpenApiTypes.INT),
            OpenApiParameter(name="is_active", required=False, type=OpenApiTypes.BOOL),
            OpenApiParameter(name="q", description="search in username/email/names", required=False, type=OpenApiTypes.STR),
        ],
    ),
    create=extend_schema(summary="Create user (admin)"),
    destroy=extend_schema(summary="Delete user (admin)"),
)
class UserViewSet(viewsets.ModelViewSet):
    """
    I expose the user directory. Everyone may read and edit their own record;
    managers read everyone; admins manage roles and accounts.
    """
    schema_tags = ["Users"]
    queryset = User.objects.select_related("department").all()
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated, PolicyPermission]
    policy_resource = "user"
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ["username", "email", "first_name", "last_name", "display_name"]
    ordering_fields = ["username", "date_joined", "role"]
    ordering = ["username"]

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if params.get("role"):
            qs = qs.filter(role=params["role"])
        if params.get("department"):
            qs = qs.filter(department_id=params["department"])
        active = (params.get("is_active") or "").lower()
        if active in {"1", "true", "yes"}:
            qs = qs.filter(is_active=True)
        elif active in {"0", "false", "no"}:
            qs = qs.filter(is_active=False)
        return qs

    def perform_create(self, serializer):
        user = serializer.save()
        log_event(self.request, "user.create", "User", user.id, metadata={"role": user.role})

    def perform_update(self, serializer):
        before = serializer.instance.role
        user = serializer.save()
        meta = {"role": [before, user.role]} if before != user.role else {}
        log_event(self.request, "user.update", "User", user.id, metadata=meta)

    def perform_destroy(self, instance):
        log_event(self.request, "user.delete", "User", instance.id)
        instance.delete()
