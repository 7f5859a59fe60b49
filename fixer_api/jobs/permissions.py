from rest_framework.permissions import BasePermission


class IsPoster(BasePermission):
    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.account_type == 'poster')


class IsWorker(BasePermission):
    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.account_type == 'worker')
