from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .api import ChangePasswordView, RegisterView, UserViewSet, WhoAmIView

app_name = "accounts_api"

router = DefaultRouter()
router.register(r"users", UserViewSet, basename="user")

urlpatterns = [
    path("auth/register/", RegisterView.as_view(), name="register"),
    path("auth/change-password/", ChangePasswordView.as_view(), name="change-password"),
    path("accounts/whoami/", WhoAmIView.as_view(), name="whoami"),
    path("", include(router.urls)),
]
