"""
URL configuration for the shared expense ledger.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/token/            - Obtain JWT pair (email/password)
    /api/v1/auth/token/refresh/    - Refresh access token
    /api/v1/                       - Ledger endpoints
        expenses/                  - Expense list/create
        expenses/statistics/       - Aggregates over filtered expenses
        expenses/{id}/             - Expense detail/update/delete
        participants/              - Participant list/create
        participants/{id}/         - Participant update/delete
        categories/                - Category list/create
        categories/default/        - Default category definitions
        categories/{id}/           - Category update/delete
        groups/                    - Group list/create
        groups/{id}/               - Group update/delete
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("", include("ledger.urls")),
]

urlpatterns = [
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Ledger Admin"
admin.site.site_title = "Ledger Admin Portal"
admin.site.index_title = "Shared expenses"
