import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Hotel",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("slug", models.SlugField(blank=True, max_length=255, unique=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Hotel",
                "verbose_name_plural": "Hotels",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Room",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("room_number", models.CharField(max_length=16)),
                (
                    "room_type",
                    models.CharField(
                        choices=[("single", "Single"), ("double", "Double"), ("suite", "Suite"), ("deluxe", "Deluxe")],
                        max_length=16,
                    ),
                ),
                (
                    "base_rate",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "current_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Nightly rate offered today; defaults to the base rate.",
                        max_digits=10,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "capacity",
                    models.PositiveSmallIntegerField(
                        default=2,
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                ("floor", models.PositiveSmallIntegerField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("vacant", "Vacant"),
                            ("dirty", "Dirty"),
                            ("maintenance", "Maintenance"),
                            ("out_of_order", "Out of order"),
                        ],
                        default="vacant",
                        max_length=16,
                    ),
                ),
                ("description", models.CharField(blank=True, max_length=500)),
                ("is_active", models.BooleanField(default=True)),
                ("last_cleaned_at", models.DateTimeField(blank=True, null=True)),
                ("maintenance_notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "hotel",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rooms",
                        to="rooms.hotel",
                    ),
                ),
            ],
            options={
                "verbose_name": "Room",
                "verbose_name_plural": "Rooms",
                "ordering": ["hotel", "room_number"],
                "indexes": [
                    models.Index(fields=["hotel", "room_type", "status"], name="room_hotel_type_status_idx"),
                    models.Index(fields=["hotel", "floor"], name="room_hotel_floor_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("hotel", "room_number"), name="room_number_unique_per_hotel"),
                ],
            },
        ),
    ]
