from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from foodbridge.views import HealthView

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('donations.urls')),
    path('api/volunteers/', include('volunteers.urls')),
    path('api/health/', HealthView.as_view(), name='health'),
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/schema/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
]
