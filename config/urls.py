# config/urls.py
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path

from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [
    # Admin
    path("admin/", admin.site.urls),

    # Healthcheck
    path("health/", lambda r: JsonResponse({"ok": True}, status=200), name="health"),

    # OpenAPI schema + Swagger UI
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),

    # JWT
    path("api/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("api/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),

    # ---------- v1 APIs ----------
    path("api/v1/", include(("apps.accounts.api_urls", "accounts_api"), namespace="accounts_api")),
    path("api/v1/", include(("apps.departments.api_urls", "departments_api"), namespace="departments_api")),
    path("api/v1/", include(("apps.events.api_urls", "events_api"), namespace="events_api")),
    path("api/v1/", include(("apps.finance.api_urls", "finance_api"), namespace="finance_api")),
    path("api/v1/", include(("apps.messaging.api_urls", "messaging_api"), namespace="messaging_api")),
    path("api/v1/", include(("apps.announcements.api_urls", "announcements_api"), namespace="announcements_api")),
    path("api/v1/", include(("apps.notifications.api_urls", "notifications_api"), namespace="notifications_api")),
    path("api/v1/", include(("apps.reports.api_urls", "reports_api"), namespace="reports_api")),
]

# Media files during development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
