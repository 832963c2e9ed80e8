import hashlib

from django.db import models
from django.contrib.auth.models import AbstractUser, BaseUserManager
from country_list import countries_for_language
from auditlog.registry import auditlog
from auditlog.models import AuditlogHistoryField

from .trust_bands import INTERNAL_BANDS, to_frd_band, get_trust_band_description


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
    Marketplace account. Investors fund projects, fundraisers own them.
    Carries an internal trust band (A-D) and an optional linked wallet.
    """
    INVESTOR = 'INVESTOR'
    FUNDRAISER = 'FUNDRAISER'
    USER_TYPE_CHOICES = (
        (INVESTOR, 'Investor'),
        (FUNDRAISER, 'Fundraiser'),
    )
    TRUST_BAND_CHOICES = tuple((band, band) for band in INTERNAL_BANDS)

    user_type = models.CharField(max_length=20, choices=USER_TYPE_CHOICES)
    phone_number = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=50, choices=countries_for_language('en'), blank=True)
    company_name = models.CharField(max_length=255, blank=True)
    wallet_address = models.CharField(max_length=42, blank=True)
    trust_band = models.CharField(max_length=1, choices=TRUST_BAND_CHOICES, default='D')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    email = models.EmailField(unique=True, blank=False)
    username = None

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']

    objects = CustomUserManager()

    history = AuditlogHistoryField()

    def __str__(self):
        return self.email

    @property
    def is_investor(self):
        return self.user_type == self.INVESTOR

    @property
    def is_fundraiser(self):
        return self.user_type == self.FUNDRAISER

    @property
    def chain_address(self):
        """Linked wallet, or a deterministic custodial address for users without one."""
        if self.wallet_address:
            return self.wallet_address.lower()
        digest = hashlib.sha256(f"custodial:{self.pk}".encode()).hexdigest()
        return f"0x{digest[:40]}"

    @property
    def trust_badge(self):
        return {
            'internal': self.trust_band,
            'external': to_frd_band(self.trust_band),
            'label': get_trust_band_description(self.trust_band),
        }


auditlog.register(CustomUser, exclude_fields=['password', 'last_login'])
