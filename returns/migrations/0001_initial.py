# returns/migrations/0001_initial.py
from __future__ import annotations

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("orders", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ReturnRequest",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("type", models.CharField(choices=[("return", "Return"), ("exchange", "Exchange"), ("refund", "Refund"), ("dispute", "Dispute")], default="return", max_length=16)),
                ("reason", models.CharField(choices=[("defective", "Defective"), ("wrong_item", "Wrong item received"), ("not_as_described", "Not as described"), ("change_of_mind", "Changed my mind"), ("damaged_in_shipping", "Damaged in shipping"), ("size_issue", "Size issue"), ("quality_issue", "Quality issue"), ("other", "Other")], max_length=32)),
                ("description", models.TextField()),
                ("status", models.CharField(choices=[("pending", "Pending review"), ("approved", "Approved"), ("rejected", "Rejected"), ("processing", "Processing"), ("completed", "Completed"), ("cancelled", "Cancelled")], default="pending", max_length=16)),
                ("requested_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("approved_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("rma_number", models.CharField(max_length=40, unique=True)),
                ("tracking_number", models.CharField(blank=True, default="", max_length=64)),
                ("admin_notes", models.TextField(blank=True, default="")),
                ("evidence", models.JSONField(blank=True, default=list)),
                ("stripe_refund_id", models.CharField(blank=True, default="", max_length=255)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("submitted_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("order", models.OneToOneField(help_text="At most one return request per order, ever.", on_delete=django.db.models.deletion.PROTECT, related_name="return_request", to="orders.order")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="return_requests", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("-submitted_at",),
                "indexes": [
                    models.Index(fields=["status", "-submitted_at"], name="rr_status_submitted_idx"),
                    models.Index(fields=["user", "-submitted_at"], name="rr_user_submitted_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ReturnItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position", models.PositiveIntegerField(default=0)),
                ("order_item_index", models.PositiveIntegerField()),
                ("quantity", models.PositiveIntegerField(default=0)),
                ("reason", models.CharField(blank=True, default="", max_length=255)),
                ("return_request", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="returns.returnrequest")),
            ],
            options={
                "ordering": ("position", "id"),
            },
        ),
        migrations.CreateModel(
            name="ReturnMessage",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("sender_type", models.CharField(choices=[("customer", "Customer"), ("admin", "Admin")], max_length=16)),
                ("body", models.TextField(blank=True, default="")),
                ("message_type", models.CharField(choices=[("text", "Text"), ("status_update", "Status update"), ("admin_response", "Admin response")], default="text", max_length=16)),
                ("attachments", models.JSONField(blank=True, default=list)),
                ("is_read", models.BooleanField(default=False)),
                ("read_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("return_request", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="messages", to="returns.returnrequest")),
                ("sender", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="return_messages", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("created_at", "id"),
                "indexes": [
                    models.Index(fields=["return_request", "created_at"], name="rmsg_request_created_idx"),
                    models.Index(fields=["return_request", "sender_type", "is_read"], name="rmsg_request_unread_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="RefundAttempt",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("request_id", models.CharField(blank=True, default="", max_length=64)),
                ("amount_cents", models.PositiveIntegerField(default=0)),
                ("full_refund", models.BooleanField(default=False)),
                ("success", models.BooleanField(default=False)),
                ("retryable", models.BooleanField(default=False)),
                ("stripe_refund_id", models.CharField(blank=True, default="", max_length=255)),
                ("error_message", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("actor", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="refund_attempts", to=settings.AUTH_USER_MODEL)),
                ("return_request", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="attempts", to="returns.returnrequest")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["success", "-created_at"], name="rattempt_success_idx"),
                ],
            },
        ),
    ]
