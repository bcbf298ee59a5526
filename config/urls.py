from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from .health import health_check

admin.site.site_header = "Intranet HR Administration"
admin.site.site_title = "Intranet HR"
admin.site.index_title = "Employees and payroll"

urlpatterns = [
    path("health/", health_check, name="health"),
    path("admin/", admin.site.urls),

    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),

    path("api/v1/accounts/", include("accounts.urls")),
    path("api/v1/payroll/", include("apps.payroll.urls")),
]
