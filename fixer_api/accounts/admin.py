from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import CustomUser


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    ordering = ('email',)
    list_display = ('id', 'email', 'first_name', 'last_name', 'account_type', 'connect_account_status', 'is_active')
    list_filter = ('account_type', 'connect_account_status', 'is_active', 'is_staff')
    search_fields = ('email', 'first_name', 'last_name', 'stripe_connect_account_id')
    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        ('Profile', {'fields': ('first_name', 'last_name', 'phone_number', 'account_type')}),
        ('Payments', {'fields': (
            'stripe_customer_id', 'stripe_connect_account_id', 'connect_account_status', 'connect_status_checked_at',
        )}),
        ('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
    )
    add_fieldsets = (
        (None, {'classes': ('wide',), 'fields': ('email', 'account_type', 'password1', 'password2')}),
    )
