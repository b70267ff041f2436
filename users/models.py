# tsf_platform/users/models.py
from django.contrib.auth.models import AbstractUser
from django.db import models

class User(AbstractUser):
    class Role(models.TextChoices):
        SUPER_ADMIN = "super_admin", "Super Admin"
        ADMIN = "admin", "Admin"
        INSTRUCTOR = "instructor", "Instructor"
        COMMANDER = "commander", "Commander"
        TRAINEE = "trainee", "Trainee"

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        SUSPENDED = "suspended", "Suspended"

    # Enforce unique email for authentication
    email = models.EmailField(unique=True)

    role = models.CharField(max_length=20, choices=Role.choices, default=Role.TRAINEE)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)

    # Service record
    qid = models.CharField(max_length=20, blank=True)
    badge_no = models.CharField(max_length=20, blank=True)
    rank = models.CharField(max_length=50, blank=True)
    unit = models.CharField(max_length=100, blank=True, null=True, db_index=True)

    locale = models.CharField(max_length=5, default="ar")
    phone_number = models.CharField(max_length=20, blank=True)
    avatar = models.ImageField(upload_to="avatars/", blank=True, null=True)

    # Set email as the main field for authentication
    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username', 'first_name', 'last_name']

    def __str__(self):
        return self.email

    @property
    def display_name(self):
        return self.get_full_name() or self.email
