from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from common.exceptions import InvalidCredentials

from .access_codes import AccessCodeRegistry
from .audit import AccountsAuditService
from .serializers import (
    LoginSerializer,
    PasswordChangeSerializer,
    PublicUserSerializer,
    RegisterSerializer,
    RequestAccessSerializer,
    UserProfileUpdateSerializer,
    VerifyDepartmentSerializer,
)
from .services import AccessRequestService, CredentialStore
from .throttles import AccessRequestThrottle, LoginRateThrottle


# ================= REGISTER / LOGIN =================

class RegisterAPIView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = CredentialStore.create_user(**serializer.validated_data)
        AccountsAuditService.log_user_registered(request, user)
        return Response(
            {
                "success": True,
                "message": "User registered successfully!",
                "user": PublicUserSerializer(user).data,
            },
            status=status.HTTP_201_CREATED,
        )


class LoginView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [LoginRateThrottle]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        username = serializer.validated_data["username"]

        try:
            user = CredentialStore.authenticate(username, serializer.validated_data["password"])
        except InvalidCredentials:
            AccountsAuditService.log_login_failed(request, username)
            raise

        refresh = RefreshToken.for_user(user)
        AccountsAuditService.log_login_success(request, user)
        return Response(
            {
                "success": True,
                "message": "Login successful!",
                "user": PublicUserSerializer(user).data,
                "access": str(refresh.access_token),
                "refresh": str(refresh),
            },
            status=status.HTTP_200_OK,
        )


# ================= USERS =================

class UserListAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        users = CredentialStore.list_users()
        return Response(
            {
                "success": True,
                "count": users.count(),
                "users": PublicUserSerializer(users, many=True).data,
            },
            status=status.HTTP_200_OK,
        )


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({"success": True, "user": PublicUserSerializer(request.user).data})

    def patch(self, request):
        serializer = UserProfileUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        user = CredentialStore.update_user(request.user, **serializer.validated_data)
        return Response(
            {
                "success": True,
                "message": "Profile updated.",
                "user": PublicUserSerializer(user).data,
            },
            status=status.HTTP_200_OK,
        )


class MyPasswordAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = PasswordChangeSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)

        CredentialStore.change_password(request.user, serializer.validated_data["new_password"])
        AccountsAuditService.log_password_changed(request, request.user)
        return Response({"success": True, "message": "Password changed."}, status=status.HTTP_200_OK)


# ================= SELF-SERVICE ACCESS =================

class RequestAccessAPIView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [AccessRequestThrottle]

    def post(self, request):
        serializer = RequestAccessSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        grant = AccessRequestService().request_access(
            email=data["email"],
            username=data["username"],
            name=data["name"],
            department=data.get("department") or None,
        )
        user = grant.user
        AccountsAuditService.log_access_requested(request, user)
        return Response(
            {
                "success": True,
                "message": "Access granted! Use the credentials below to log in.",
                "credentials": {
                    "employee_id": user.employee_id,
                    "username": user.username,
                    "temp_password": grant.temporary_password,
                    "email": user.email,
                },
                "user": PublicUserSerializer(user).data,
            },
            status=status.HTTP_201_CREATED,
        )


class VerifyDepartmentAPIView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = VerifyDepartmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        department = serializer.validated_data["department"]

        granted = AccessCodeRegistry.from_settings().verify(
            department,
            serializer.validated_data.get("access_code"),
        )
        AccountsAuditService.log_department_verification(request, department, granted)
        if not granted:
            return Response(
                {"success": False, "message": "Invalid access code for this department"},
                status=status.HTTP_403_FORBIDDEN,
            )
        return Response({"success": True, "message": "Access granted"}, status=status.HTTP_200_OK)


class DepartmentListAPIView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        registry = AccessCodeRegistry.from_settings()
        return Response(
            {
                "success": True,
                "departments": [
                    {"key": key, "requires_code": key != registry.open_department}
                    for key in registry.departments()
                ],
            },
            status=status.HTTP_200_OK,
        )
