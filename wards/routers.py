"""
URL mappings for the bed occupancy API.

Trailing slashes are omitted to match the front-end
client.  Mutations are POSTs carrying the target id in the body.
"""
from django.urls import path, include

from .auth_views import login_view, jwt_refresh_view, jwt_logout_view
from .views import beds, health, occupancy


urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh_view'),
    path('api/auth/logout', jwt_logout_view, name='jwt_logout_view'),
    # Bed registry
    path('api/beds', beds.list_beds, name='bed_list'),
    path('api/beds/available', beds.available_beds, name='bed_available'),
    path('api/beds/wards', beds.wards, name='bed_wards'),
    path('api/beds/create', beds.create_bed, name='bed_create'),
    path('api/beds/update', beds.update_bed, name='bed_update'),
    path('api/beds/delete', beds.delete_bed, name='bed_delete'),
    path('api/beds/<int:pk>', beds.bed_detail, name='bed_detail'),
    path('api/departments', beds.departments, name='department_list'),
    # Occupancy
    path('api/occupancy/stats', occupancy.occupancy_stats, name='occupancy_stats'),
    path('api/occupancy/history', occupancy.occupancy_history, name='occupancy_history'),
    path('api/occupancy/allocate', occupancy.allocate, name='occupancy_allocate'),
    path('api/occupancy/discharge', occupancy.discharge, name='occupancy_discharge'),
    path('api/occupancy/transfer', occupancy.transfer, name='occupancy_transfer'),
    path('api/occupancy/update', occupancy.update_occupancy, name='occupancy_update'),
]
