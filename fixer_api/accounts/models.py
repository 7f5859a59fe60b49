from django.db import models
from django.contrib.auth.models import AbstractUser, BaseUserManager
from auditlog.registry import auditlog
from auditlog.models import AuditlogHistoryField


class CustomUserManager(BaseUserManager):
    """
    Manager for CustomUser. Handles user and superuser creation using email as the unique identifier.
    """
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("Email is required.")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)

        return self.create_user(email, password, **extra_fields)


class CustomUser(AbstractUser):
    """
    Marketplace user. Either posts jobs ('poster') or takes them ('worker').

    Only the payout-relevant part of the profile lives here: the processor
    customer used to charge posters and the Connect account used to pay workers.
    """
    ACCOUNT_TYPE_CHOICES = (
        ('worker', 'Worker'),
        ('poster', 'Poster'),
    )

    CONNECT_STATUS_CHOICES = (
        ('none', 'None'),
        ('pending', 'Pending'),
        ('active', 'Active'),
        ('restricted', 'Restricted'),
        ('incomplete', 'Incomplete'),
    )

    account_type = models.CharField(max_length=20, choices=ACCOUNT_TYPE_CHOICES, default='worker')
    phone_number = models.CharField(max_length=20, blank=True)
    email = models.EmailField(unique=True, blank=False)
    stripe_customer_id = models.CharField(max_length=255, blank=True, null=True)
    stripe_connect_account_id = models.CharField(max_length=255, blank=True, null=True, unique=True)
    connect_account_status = models.CharField(max_length=20, choices=CONNECT_STATUS_CHOICES, default='none')
    connect_status_checked_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    username = None

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name',]

    objects = CustomUserManager()

    history = AuditlogHistoryField()

    def __str__(self):
        return self.email

    @property
    def is_worker(self):
        return self.account_type == 'worker'

    @property
    def is_poster(self):
        return self.account_type == 'poster'

    @property
    def can_receive_payouts(self):
        return bool(self.stripe_connect_account_id) and self.connect_account_status == 'active'


auditlog.register(CustomUser, exclude_fields=['password', 'last_login'])
