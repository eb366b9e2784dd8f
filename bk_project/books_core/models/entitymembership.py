import re

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import EntityManager

PAN_RE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
GSTIN_RE = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")


# ---------- Entity (tenant) ----------
class Entity(models.Model):

    """Business entity whose books are kept (the tenant)"""
    ENTITY_TYPES = [
        ("individual", "Individual"),
        ("proprietorship", "Proprietorship"),
        ("partnership", "Partnership"),
        ("company", "Company"),
        ("trust", "Trust"),
        ("other", "Other"),
    ]

    name = models.CharField(max_length=200)
    entity_type = models.CharField(
        max_length=20, choices=ENTITY_TYPES, default="company")

    # Tax identifiers, both optional
    pan = models.CharField(max_length=10, blank=True)
    gstin = models.CharField(max_length=15, blank=True)

    # Soft-disable instead of delete, records keep pointing here
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "entities"
        constraints = [
            models.UniqueConstraint(fields=["name"], name="uq_entity_name"),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        self.pan = (self.pan or "").strip().upper()
        self.gstin = (self.gstin or "").strip().upper()
        if self.pan and not PAN_RE.match(self.pan):
            raise ValidationError({"pan": "Invalid PAN format"})
        if self.gstin and not GSTIN_RE.match(self.gstin):
            raise ValidationError({"gstin": "Invalid GSTIN format"})

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)


# ---------- EntityMembership ----------
class EntityMembership(
    models.Model
):  # Bridge table between User and Entity, carries the user's role

    ROLE_CHOICES = [
        ("admin", "Admin"),  # full control, may cancel/delete
        ("accountant", "Accountant"),  # creates and edits documents
        ("employee", "Employee"),  # read-only on books
        ("observer", "Observer"),  # read-only
    ]
    # Roles allowed to create/update documents
    WRITE_ROLES = ("admin", "accountant")

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        # If user is deleted, their memberships go too
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    entity = models.ForeignKey(
        Entity, on_delete=models.CASCADE, related_name="memberships"
    )
    role = models.CharField(
        max_length=20, choices=ROLE_CHOICES, default="observer")
    # The entity picked when the session names none
    is_default = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce entity scoping
    objects = EntityManager()

    class Meta:
        # one user can only have one membership per entity
        constraints = [
            models.UniqueConstraint(
                fields=["user", "entity"], name="uq_user_entity_membership"
            ),
        ]
        indexes = [
            models.Index(fields=["entity", "user"]),
        ]

    def __str__(self):
        return f"{self.user} @ {self.entity} ({self.role})"

    @property
    def can_write(self):
        return self.role in self.WRITE_ROLES

    @property
    def can_delete(self):
        return self.role == "admin"

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
