from django.contrib import admin, messages
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import AuditLog, User


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    list_display = (
        "employee_id",
        "username",
        "name",
        "email",
        "department",
        "position",
        "is_active",
        "is_staff",
    )
    list_filter = (
        "department",
        "is_active",
        "is_staff",
    )
    search_fields = (
        "employee_id",
        "username",
        "name",
        "email",
    )
    ordering = ("date_joined", "id")
    readonly_fields = ("last_login", "date_joined")
    filter_horizontal = ()

    fieldsets = (
        ("Account", {"fields": ("employee_id", "username", "password")}),
        ("Profile", {"fields": ("name", "email", "department", "position")}),
        ("Access", {"fields": ("is_active", "is_staff")}),
        (
            "System",
            {
                "fields": ("last_login", "date_joined"),
                "classes": ("collapse",),
            },
        ),
    )

    add_fieldsets = (
        (
            "Create user",
            {
                "classes": ("wide",),
                "fields": (
                    "employee_id",
                    "username",
                    "password1",
                    "password2",
                    "name",
                    "email",
                    "department",
                    "position",
                    "is_active",
                    "is_staff",
                ),
            },
        ),
    )

    actions = ("set_active", "set_inactive")

    @admin.action(description="Activate selected users")
    def set_active(self, request, queryset):
        updated = queryset.update(is_active=True)
        self.message_user(request, f"Activated users: {updated}")

    @admin.action(description="Deactivate selected users")
    def set_inactive(self, request, queryset):
        updated = queryset.update(is_active=False)
        self.message_user(request, f"Deactivated users: {updated}", level=messages.WARNING)


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "action", "level", "category", "user", "object_type", "object_id", "ip_address")
    list_filter = ("level", "category")
    search_fields = ("action", "object_id", "user__username")
    readonly_fields = [field.name for field in AuditLog._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
