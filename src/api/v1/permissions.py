"""Custom DRF permissions for the RAVITO API."""
from rest_framework.permissions import SAFE_METHODS, BasePermission


def _is_admin(user):
    return bool(user and user.is_authenticated and user.is_admin)


class IsAdminRole(BasePermission):
    """Allow access to platform administrators (ADMIN role or superuser)."""

    def has_permission(self, request, view):
        return _is_admin(request.user)


class IsAdminOrReadOnly(BasePermission):
    """Everyone authenticated reads; only administrators write."""

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        if request.method in SAFE_METHODS:
            return True
        return _is_admin(request.user)


class IsSupplierOrAdmin(BasePermission):
    """Suppliers manage their own grids; administrators see every grid."""

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if request.method in SAFE_METHODS:
            return user.is_supplier or user.is_admin
        return user.is_supplier

    def has_object_permission(self, request, view, obj):
        if request.method in SAFE_METHODS and request.user.is_admin:
            return True
        return obj.supplier_id == request.user.pk


class IsOrganizationMember(BasePermission):
    """Client users reach the carnet of their own organization only."""

    message = "Vous devez appartenir a une organisation pour gerer un carnet de credit."

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if user.is_admin:
            return True
        return user.is_client and user.organization_id is not None

    def has_object_permission(self, request, view, obj):
        if request.user.is_admin:
            return True
        return obj.organization_id == request.user.organization_id
