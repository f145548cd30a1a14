import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import boletera.tickets.models

LINKED_VIA_CHOICES = [("manual_admin", "Linked by staff"), ("auto_email_match", "Linked on sign up")]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("boletera_checkout", "0001_initial"),
        ("boletera_events", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Ticket",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("ticket_type_name", models.CharField(max_length=200)),
                ("customer_name", models.CharField(max_length=200)),
                ("customer_email", models.EmailField(max_length=254)),
                ("customer_phone", models.CharField(blank=True, default="", max_length=50)),
                (
                    "status",
                    models.CharField(
                        choices=[("purchased", "Purchased"), ("configured", "Configured"), ("used", "Used")],
                        default="purchased",
                        max_length=20,
                    ),
                ),
                (
                    "qr_id",
                    models.CharField(default=boletera.tickets.models.generate_qr_id, max_length=64, unique=True),
                ),
                ("amount_paid", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("currency", models.CharField(default="MXN", max_length=3)),
                ("authorized_days", models.JSONField(blank=True, default=list)),
                ("used_days", models.JSONField(blank=True, default=list)),
                ("attendee_name", models.CharField(blank=True, default="", max_length=200)),
                ("attendee_email", models.EmailField(blank=True, default="", max_length=254)),
                ("attendee_phone", models.CharField(blank=True, default="", max_length=50)),
                ("special_requirements", models.TextField(blank=True, default="")),
                ("is_courtesy", models.BooleanField(default=False)),
                ("courtesy_type", models.CharField(blank=True, default="", max_length=50)),
                (
                    "created_via",
                    models.CharField(
                        choices=[
                            ("purchase", "Purchase"),
                            ("admin_courtesy_linked", "Courtesy (pending link)"),
                            ("admin_courtesy_linked_immediate", "Courtesy (linked)"),
                            ("admin_courtesy_standalone", "Courtesy (standalone)"),
                        ],
                        default="purchase",
                        max_length=40,
                    ),
                ),
                ("linked_at", models.DateTimeField(blank=True, null=True)),
                (
                    "linked_via",
                    models.CharField(blank=True, choices=LINKED_VIA_CHOICES, default="", max_length=20),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="tickets",
                        to="boletera_events.event",
                    ),
                ),
                (
                    "linked_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="tickets",
                        to="boletera_checkout.order",
                    ),
                ),
                (
                    "ticket_type",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="tickets",
                        to="boletera_events.tickettype",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="tickets",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="OrphanRecovery",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "recovery_status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("recovered", "Recovered"), ("expired", "Expired")],
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "target_email",
                    models.EmailField(help_text="Email the ticket should end up attached to.", max_length=254),
                ),
                ("account_requested", models.BooleanField(default=False)),
                ("password_provided", models.BooleanField(default=False)),
                ("failure_reason", models.TextField(blank=True, default="")),
                ("recovered_at", models.DateTimeField(blank=True, null=True)),
                (
                    "recovery_method",
                    models.CharField(blank=True, choices=LINKED_VIA_CHOICES, default="", max_length=20),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "linked_to_user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "ticket",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="recovery",
                        to="boletera_tickets.ticket",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "verbose_name_plural": "orphan recoveries",
            },
        ),
        migrations.CreateModel(
            name="CheckIn",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("day", models.DateField()),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("undone_at", models.DateTimeField(blank=True, null=True)),
                (
                    "performed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "ticket",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="checkins",
                        to="boletera_tickets.ticket",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
