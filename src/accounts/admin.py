from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.db.models import Count, Q
from django.utils.translation import gettext_lazy as _

from .models import Organization, User


class MemberInline(admin.TabularInline):
    model = User
    fk_name = "organization"
    extra = 0
    fields = ("email", "first_name", "last_name", "role", "is_active")
    readonly_fields = fields
    can_delete = False
    show_change_link = True


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ("name", "phone", "member_count", "open_credit_count", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name", "phone")
    readonly_fields = ("id", "created_at", "updated_at")
    inlines = [MemberInline]

    def get_queryset(self, request):
        return super().get_queryset(request).annotate(
            _member_count=Count("members", distinct=True),
            _open_credit_count=Count(
                "credit_customers",
                filter=Q(credit_customers__is_active=True, credit_customers__current_balance__gt=0),
                distinct=True,
            ),
        )

    @admin.display(description="Membres", ordering="_member_count")
    def member_count(self, obj):
        return obj._member_count

    @admin.display(description="Credits en cours", ordering="_open_credit_count")
    def open_credit_count(self, obj):
        return obj._open_credit_count


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Users of the three sides of the platform: admins, suppliers, clients."""

    list_display = (
        "email",
        "display_name",
        "role",
        "organization",
        "is_active",
        "date_joined",
    )
    list_filter = ("role", "is_active", "is_staff", "organization")
    search_fields = ("email", "first_name", "last_name", "phone", "business_name")
    ordering = ("role", "last_name", "first_name")
    list_select_related = ("organization",)
    actions = ("activate_users", "deactivate_users")

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        (
            _("Identite"),
            {"fields": ("first_name", "last_name", "phone", "business_name")},
        ),
        (
            _("Acces RAVITO"),
            {"fields": ("role", "organization", "is_active")},
        ),
        (
            _("Admin Django"),
            {
                "classes": ("collapse",),
                "fields": ("is_staff", "is_superuser", "groups", "user_permissions"),
            },
        ),
        (_("Dates"), {"fields": ("last_login", "date_joined")}),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": (
                    "email",
                    "first_name",
                    "last_name",
                    "business_name",
                    "role",
                    "organization",
                    "password1",
                    "password2",
                ),
            },
        ),
    )

    readonly_fields = ("date_joined", "last_login")

    @admin.display(description="Nom affiche")
    def display_name(self, obj):
        return obj.display_name

    @admin.action(description="Activer les comptes selectionnes")
    def activate_users(self, request, queryset):
        queryset.update(is_active=True)

    @admin.action(description="Desactiver les comptes selectionnes")
    def deactivate_users(self, request, queryset):
        queryset.update(is_active=False)
