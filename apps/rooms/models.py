"""Room registry models.

A room's ``status`` is declarative intent set by housekeeping and
maintenance (vacant, dirty, maintenance, out of order). Whether a room is
occupied or reserved is derived from bookings at read time and is never
persisted on the room.
"""

from __future__ import annotations

from django.core.validators import MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.text import slugify  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Hotel(models.Model):
    """Property that scopes rooms and bookings."""

    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Hotel")
        verbose_name_plural = _("Hotels")
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name

    def save(self, *args, **kwargs):  # type: ignore
        if not self.slug:
            base_slug = slugify(self.name)[:200] or "hotel"
            candidate = base_slug
            counter = 1
            while self.__class__.objects.filter(slug=candidate).exclude(pk=self.pk).exists():
                counter += 1
                candidate = f"{base_slug}-{counter}"
            self.slug = candidate
        super().save(*args, **kwargs)


class Room(models.Model):
    """A bookable room. Rooms are soft-deactivated, never deleted."""

    class RoomType(models.TextChoices):
        SINGLE = "single", _("Single")
        DOUBLE = "double", _("Double")
        SUITE = "suite", _("Suite")
        DELUXE = "deluxe", _("Deluxe")

    class Status(models.TextChoices):
        VACANT = "vacant", _("Vacant")
        DIRTY = "dirty", _("Dirty")
        MAINTENANCE = "maintenance", _("Maintenance")
        OUT_OF_ORDER = "out_of_order", _("Out of order")

    hotel = models.ForeignKey(Hotel, on_delete=models.PROTECT, related_name="rooms")
    room_number = models.CharField(max_length=16)
    room_type = models.CharField(max_length=16, choices=RoomType.choices)
    base_rate = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(0)],
    )
    current_rate = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text=_("Nightly rate offered today; defaults to the base rate."),
    )
    capacity = models.PositiveSmallIntegerField(default=2, validators=[MinValueValidator(1)])
    floor = models.PositiveSmallIntegerField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.VACANT)
    description = models.CharField(max_length=500, blank=True)
    is_active = models.BooleanField(default=True)
    last_cleaned_at = models.DateTimeField(null=True, blank=True)
    maintenance_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Room")
        verbose_name_plural = _("Rooms")
        ordering = ["hotel", "room_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["hotel", "room_number"],
                name="room_number_unique_per_hotel",
            ),
        ]
        indexes = [
            models.Index(fields=["hotel", "room_type", "status"], name="room_hotel_type_status_idx"),
            models.Index(fields=["hotel", "floor"], name="room_hotel_floor_idx"),
        ]

    def __str__(self) -> str:
        return f"Room {self.room_number} ({self.get_room_type_display()})"

    def save(self, *args, **kwargs):  # type: ignore
        if self.current_rate is None:
            self.current_rate = self.base_rate
            update_fields = kwargs.get("update_fields")
            if update_fields is not None and "current_rate" not in update_fields:
                kwargs["update_fields"] = [*update_fields, "current_rate"]
        super().save(*args, **kwargs)

    @property
    def nightly_rate(self):
        return self.current_rate if self.current_rate is not None else self.base_rate

    def mark_status(self, status: str, notes: str = "") -> None:
        previous = self.status
        self.status = status
        fields = ["status", "updated_at"]
        if previous == self.Status.DIRTY and status == self.Status.VACANT:
            self.last_cleaned_at = timezone.now()
            fields.append("last_cleaned_at")
        if notes:
            self.maintenance_notes = notes
            fields.append("maintenance_notes")
        self.save(update_fields=fields)

    def deactivate(self) -> None:
        if self.is_active:
            self.is_active = False
            self.save(update_fields=["is_active", "updated_at"])
