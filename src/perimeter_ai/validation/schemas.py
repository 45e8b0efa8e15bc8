"""Pre-built schemas for the boundary's endpoints."""

from __future__ import annotations

import re

from perimeter_ai.validation.schema import (
    ArrayField,
    NumberField,
    ObjectField,
    Schema,
    StringField,
    UuidField,
)

MAX_EVENTS_PER_ANALYSIS = 100
ANALYSIS_TYPES = ("batch", "realtime", "scheduled", "manual")

THREAT_DETECTION_SCHEMA: Schema = {
    # Bounded to keep oversized payloads away from the model call
    "events": ArrayField(max_items=MAX_EVENTS_PER_ANALYSIS, item_type=ObjectField()),
    "analysisType": StringField(max_length=50, enum=ANALYSIS_TYPES),
}

ALLOWED_UPLOAD_TYPES: dict[str, tuple[str, ...]] = {
    "image/jpeg": ("jpg", "jpeg"),
    "image/png": ("png",),
    "image/gif": ("gif",),
    "image/webp": ("webp",),
    "application/pdf": ("pdf",),
    "video/mp4": ("mp4",),
    "video/webm": ("webm",),
}

FILE_UPLOAD_SCHEMA: Schema = {
    "fileName": StringField(
        required=True,
        max_length=255,
        pattern=re.compile(r"\A[a-zA-Z0-9_\-. ]+\Z"),
    ),
    "fileSize": NumberField(required=True, min=1, max=50 * 1024 * 1024),
    # Allow-list is checked by check_file_upload with its own message
    "mimeType": StringField(required=True, max_length=100),
    "maxSize": NumberField(min=1, max=100 * 1024 * 1024),
}

ADMIN_OPERATION_SCHEMA: Schema = {
    "operation": StringField(
        required=True,
        max_length=100,
        enum=(
            "get_filtered_profiles",
            "assign_role",
            "revoke_role",
            "delete_user",
            "update_user_status",
            "get_audit_logs",
            "export_data",
        ),
    ),
}

SECURITY_MONITOR_SCHEMA: Schema = {
    "action": StringField(
        required=True,
        max_length=50,
        enum=(
            "get_security_alerts",
            "resolve_alert",
            "analyze_security_events",
            "get_security_dashboard",
            "create_test_alert",
        ),
    ),
    "alertId": UuidField(),
}
