from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from .views import (
    DepartmentListAPIView,
    LoginView,
    MeView,
    MyPasswordAPIView,
    RegisterAPIView,
    RequestAccessAPIView,
    UserListAPIView,
    VerifyDepartmentAPIView,
)

urlpatterns = [
    # AUTH
    path("register/", RegisterAPIView.as_view(), name="accounts-register"),
    path("login/", LoginView.as_view(), name="accounts-login"),
    path("token/refresh/", TokenRefreshView.as_view(), name="accounts-token-refresh"),

    # USERS
    path("users/", UserListAPIView.as_view(), name="accounts-users"),
    path("users/me/", MeView.as_view(), name="accounts-me"),
    path("users/me/password/", MyPasswordAPIView.as_view(), name="accounts-me-password"),

    # SELF-SERVICE
    path("request-access/", RequestAccessAPIView.as_view(), name="accounts-request-access"),
    path("verify-department/", VerifyDepartmentAPIView.as_view(), name="accounts-verify-department"),
    path("departments/", DepartmentListAPIView.as_view(), name="accounts-departments"),
]
