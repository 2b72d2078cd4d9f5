from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .api import TransactionViewSet

app_name = "finance_api"

router = DefaultRouter()
router.register(r"transactions", TransactionViewSet, basename="transaction")

urlpatterns = [path("", include(router.urls))]
