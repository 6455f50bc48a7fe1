"""
URL configuration for the ledger API.

URL Structure:
    /expenses/                 GET, POST
    /expenses/statistics/      GET
    /expenses/{id}/            GET, PUT, PATCH, DELETE
    /participants/             GET, POST
    /participants/{id}/        PUT, PATCH, DELETE
    /categories/               GET, POST
    /categories/default/       GET
    /categories/{id}/          PUT, PATCH, DELETE
    /groups/                   GET, POST
    /groups/{id}/              PUT, PATCH, DELETE

All URLs are prefixed with /api/v1/ in the main URL configuration.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from ledger.views import CategoryViewSet, ExpenseViewSet, GroupViewSet, ParticipantViewSet

router = DefaultRouter()
router.register(r"expenses", ExpenseViewSet, basename="expense")
router.register(r"participants", ParticipantViewSet, basename="participant")
router.register(r"categories", CategoryViewSet, basename="category")
router.register(r"groups", GroupViewSet, basename="group")

app_name = "ledger"

urlpatterns = [
    path("", include(router.urls)),
]
