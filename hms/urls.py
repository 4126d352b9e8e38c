"""
Root URL configuration.

Admin site, the ward API from ``wards.routers`` and the drf-yasg
OpenAPI views (``/swagger/``, ``/redoc/`` and the raw schema at
``/swagger.json``).
"""
from django.contrib import admin
from django.urls import include, path, re_path
from drf_yasg import openapi
from drf_yasg.views import get_schema_view
from rest_framework import permissions

api_info = openapi.Info(
    title="Hospital Bed Occupancy API",
    default_version='v1',
    description=(
        "Bed registry, admissions, transfers and discharges.  "
        "Authenticate with `Authorization: Token <key>` or `Bearer <jwt>`; "
        "ward endpoints need an admin, doctor or staff account."
    ),
    contact=openapi.Contact(email="ward-it@example.org"),
)

schema_view = get_schema_view(
    api_info,
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    # departments, patients and doctors are maintained here
    path('admin/', admin.site.urls),
    path('', include('wards.routers')),
    re_path(r'^swagger(?P<format>\.json|\.yaml)$', schema_view.without_ui(cache_timeout=0), name='schema-json'),
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
]
