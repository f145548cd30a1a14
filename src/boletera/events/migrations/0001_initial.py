import django.core.validators
import django.db.models.deletion
import encrypted_fields.fields
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=200, unique=True)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("location", models.CharField(blank=True, default="", max_length=300)),
                ("description", models.TextField(blank=True, default="")),
                ("public_description", models.TextField(blank=True, default="")),
                ("internal_notes", models.TextField(blank=True, default="")),
                ("featured_image_url", models.URLField(blank=True, default="")),
                ("terms_and_conditions", models.TextField(blank=True, default="")),
                ("contact_email", models.EmailField(blank=True, default="", max_length=254)),
                ("published", models.BooleanField(default=False)),
                (
                    "allow_preregistration",
                    models.BooleanField(
                        default=False,
                        help_text="When True, visitors may register interest instead of buying.",
                    ),
                ),
                ("preregistration_message", models.TextField(blank=True, default="")),
                (
                    "paypal_client_id",
                    encrypted_fields.fields.EncryptedCharField(blank=True, default=None, max_length=200, null=True),
                ),
                (
                    "paypal_client_secret",
                    encrypted_fields.fields.EncryptedCharField(blank=True, default=None, max_length=200, null=True),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-start_date"],
            },
        ),
        migrations.CreateModel(
            name="TicketType",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("public_description", models.TextField(blank=True, default="")),
                ("features", models.JSONField(blank=True, default=list)),
                ("price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("currency", models.CharField(default="MXN", max_length=3)),
                (
                    "access_type",
                    models.CharField(
                        choices=[
                            ("all_days", "All days"),
                            ("specific_days", "Specific days"),
                            ("any_single_day", "Any single day"),
                        ],
                        default="all_days",
                        max_length=20,
                    ),
                ),
                (
                    "available_days",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="ISO dates (YYYY-MM-DD) selectable for specific-day tickets.",
                    ),
                ),
                (
                    "limit_per_user",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Maximum per order. Blank uses the configured default.",
                        null=True,
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                (
                    "total_stock",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Total tickets available. Blank means unlimited.",
                        null=True,
                    ),
                ),
                ("sold_count", models.PositiveIntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                ("is_courtesy", models.BooleanField(default=False)),
                ("sale_start", models.DateTimeField(blank=True, null=True)),
                ("sale_end", models.DateTimeField(blank=True, null=True)),
                ("sort_order", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="ticket_types",
                        to="boletera_events.event",
                    ),
                ),
            ],
            options={
                "ordering": ["sort_order", "name"],
                "unique_together": {("event", "slug")},
            },
        ),
    ]
