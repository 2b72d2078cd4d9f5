# apps/reports/api.py
from django.http import FileResponse
from rest_framework import serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view, inline_serializer
from drf_spectacular.types import OpenApiTypes

from apps.audit.utils import log_event
from apps.rbac.permissions import PolicyPermission

from .models import Report, ReportTemplate
from .serializers import ReportSerializer, ReportTemplateSerializer
from .services import attendance_overview, financial_overview, participation_overview, report_stats
from .tasks import generate_report

SUMMARY_PARAMS = [
    OpenApiParameter(name="date_from", required=False, type=OpenApiTypes.DATE),
    OpenApiParameter(name="date_to", required=False, type=OpenApiTypes.DATE),
    OpenApiParameter(name="department", required=False, type=OpenApiTypes.INT),
    OpenApiParameter(name="event", required=False, type=OpenApiTypes.INT),
]


def _summary_filters(request) -> dict:
    return {k: v for k, v in request.query_params.items() if v not in ("", None)}


@extend_schema_view(
    list=extend_schema(
        summary="List reports visible to the caller",
        description="Report managers see everything; others see their own, public and addressed reports. "
                    "Filters: `type`, `status`, `format`, `scheduled`, and `q`.",
        parameters=[
            OpenApiParameter(name="type", required=False, type=OpenApiTypes.STR),
            OpenApiParameter(name="status", required=False, type=OpenApiTypes.STR),
            OpenApiParameter(name="format", required=False, type=OpenApiTypes.STR),
            OpenApiParameter(name="scheduled", required=False, type=OpenApiTypes.BOOL),
        ],
    ),
    create=extend_schema(summary="Define a report", description="Scheduled reports get `next_run` computed on save."),
)
class ReportViewSet(viewsets.ModelViewSet):
    """
    I own report definitions, on-demand generation, downloads and the
    read-only summary endpoints.
    """
    schema_tags = ["Reports"]
    serializer_class = ReportSerializer
    permission_classes = [IsAuthenticated, PolicyPermission]
    policy_resource = "report"
    policy_actions = {
        "generate": "run",
        "download": "view",
        "financial_summary": "summary",
        "attendance_summary": "summary",
        "participation_summary": "summary",
        "stats": "summary",
    }
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ["title", "description"]
    ordering_fields = ["created_at", "next_run", "title", "status"]
    ordering = ["-created_at", "-id"]

    def get_queryset(self):
        qs = Report.objects.visible_to(self.request.user).select_related("generated_by").prefetch_related(
            "recipient_users"
        )
        params = self.request.query_params
        for field in ("type", "status", "format"):
            if params.get(field):
                qs = qs.filter(**{field: params[field]})
        scheduled = (params.get("scheduled") or "").lower()
        if scheduled in {"1", "true", "yes"}:
            qs = qs.scheduled()
        elif scheduled in {"0", "false", "no"}:
            qs = qs.filter(schedule_frequency="")
        return qs

    def perform_create(self, serializer):
        report = serializer.save(generated_by=self.request.user)
        log_event(self.request, "report.create", "Report", report.id, metadata={"type": report.type})

    def perform_update(self, serializer):
        report = serializer.save()
        log_event(self.request, "report.update", "Report", report.id)

    def perform_destroy(self, instance):
        log_event(self.request, "report.delete", "Report", instance.id)
        if instance.file:
            instance.file.delete(save=False)
        instance.delete()

    @extend_schema(
        summary="Generate the report now",
        description="Queues generation; with eager Celery the response already carries the result.",
        request=None,
        responses={202: ReportSerializer},
    )
    @action(detail=True, methods=["post"], url_path="generate")
    def generate(self, request, pk=None):
        report = self.get_object()
        if report.status == "processing":
            return Response({"detail": "Report is already being generated."}, status=status.HTTP_409_CONFLICT)
        generate_report.delay(report.pk)
        log_event(request, "report.generate", "Report", report.id)
        report.refresh_from_db()
        return Response(ReportSerializer(report, context={"request": request}).data, status=status.HTTP_202_ACCEPTED)

    @extend_schema(summary="Download the generated file", responses={(200, "application/octet-stream"): OpenApiTypes.BINARY})
    @action(detail=True, methods=["get"], url_path="download")
    def download(self, request, pk=None):
        report = self.get_object()
        if report.status != "completed" or not report.file:
            return Response({"detail": "Report has not been generated yet."}, status=status.HTTP_404_NOT_FOUND)
        log_event(request, "report.download", "Report", report.id)
        return FileResponse(
            report.file.open("rb"),
            as_attachment=True,
            filename=report.file.name.rsplit("/", 1)[-1],
            content_type=report.mime_type or "application/octet-stream",
        )

    @extend_schema(
        summary="Financial summary",
        parameters=SUMMARY_PARAMS + [
            OpenApiParameter(name="type", required=False, type=OpenApiTypes.STR),
            OpenApiParameter(name="category", required=False, type=OpenApiTypes.STR),
        ],
        responses={200: OpenApiTypes.OBJECT},
    )
    @action(detail=False, methods=["get"], url_path="summaries/financial", url_name="financial-summary")
    def financial_summary(self, request):
        return Response(financial_overview(_summary_filters(request)))

    @extend_schema(summary="Attendance summary", parameters=SUMMARY_PARAMS, responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["get"], url_path="summaries/attendance", url_name="attendance-summary")
    def attendance_summary(self, request):
        return Response(attendance_overview(_summary_filters(request)))

    @extend_schema(
        summary="Event participation summary",
        parameters=SUMMARY_PARAMS + [OpenApiParameter(name="status", required=False, type=OpenApiTypes.STR)],
        responses={200: OpenApiTypes.OBJECT},
    )
    @action(detail=False, methods=["get"], url_path="summaries/participation", url_name="participation-summary")
    def participation_summary(self, request):
        return Response(participation_overview(_summary_filters(request)))

    @extend_schema(
        summary="Report counts and monthly trend",
        responses={
            200: inline_serializer(
                name="ReportStats",
                fields={
                    "status": serializers.DictField(child=serializers.IntegerField()),
                    "types": serializers.DictField(child=serializers.IntegerField()),
                    "scheduled": serializers.IntegerField(),
                    "monthly_trends": serializers.ListField(child=serializers.DictField()),
                },
            )
        },
    )
    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        return Response(report_stats())


@extend_schema_view(
    list=extend_schema(
        summary="List report templates",
        description="Report managers see every template; others see public ones and their own. "
                    "Filters: `type`, `active`, and `q`.",
        parameters=[
            OpenApiParameter(name="type", required=False, type=OpenApiTypes.STR),
            OpenApiParameter(name="active", required=False, type=OpenApiTypes.BOOL),
        ],
    ),
    update=extend_schema(description="Changing `layout` or `default_filters` bumps `version`."),
    partial_update=extend_schema(description="Changing `layout` or `default_filters` bumps `version`."),
)
class ReportTemplateViewSet(viewsets.ModelViewSet):
    schema_tags = ["Reports"]
    serializer_class = ReportTemplateSerializer
    permission_classes = [IsAuthenticated, PolicyPermission]
    policy_resource = "reporttemplate"
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ["name", "description"]
    ordering_fields = ["name", "created_at", "version"]
    ordering = ["name", "id"]

    def get_queryset(self):
        qs = ReportTemplate.objects.visible_to(self.request.user).select_related("created_by")
        params = self.request.query_params
        if params.get("type"):
            qs = qs.filter(type=params["type"])
        active = (params.get("active") or "").lower()
        if active in {"1", "true", "yes"}:
            qs = qs.active()
        elif active in {"0", "false", "no"}:
            qs = qs.filter(is_active=False)
        return qs

    def perform_create(self, serializer):
        template = serializer.save(created_by=self.request.user, updated_by=self.request.user)
        log_event(self.request, "report_template.create", "ReportTemplate", template.id, metadata={"type": template.type})

    def perform_update(self, serializer):
        template = serializer.save(updated_by=self.request.user)
        log_event(
            self.request, "report_template.update", "ReportTemplate", template.id, metadata={"version": template.version}
        )

    def perform_destroy(self, instance):
        log_event(self.request, "report_template.delete", "ReportTemplate", instance.id)
        instance.delete()
