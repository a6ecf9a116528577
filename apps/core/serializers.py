# apps/core/serializers.py

"""
Base serializers shared by the marketplace apps.
"""

import html
import re
from typing import Any, ClassVar

from rest_framework import serializers

from apps.core.models import AuditStampedModelBase as BaseModel


class SecurityMixin:
    """
    Input sanitization for free text supplied by customers and vendors.
    """

    @staticmethod
    def sanitize_input(value: str) -> str:
        """
        Strip script-capable tags and escape HTML entities.
        """
        if not isinstance(value, str):
            return value

        value = re.sub(
            r"<script[^>]*>.*?</script>",
            "",
            value,
            flags=re.DOTALL | re.IGNORECASE,
        )

        dangerous_tags = ["script", "iframe", "object", "embed", "form", "input"]
        for tag in dangerous_tags:
            value = re.sub(f"<{tag}[^>]*>", "", value, flags=re.IGNORECASE)
            value = re.sub(f"</{tag}>", "", value, flags=re.IGNORECASE)

        value = html.escape(value, quote=False)

        return value.strip()


class BaseModelSerializer(SecurityMixin, serializers.ModelSerializer):
    """
    Base serializer for audit-stamped models. Audit fields are output only;
    they are stamped by the model layer.
    """

    created_at = serializers.DateTimeField(format="%Y-%m-%d %H:%M:%S", read_only=True)
    updated_at = serializers.DateTimeField(format="%Y-%m-%d %H:%M:%S", read_only=True)
    created_by = serializers.StringRelatedField(read_only=True)
    updated_by = serializers.StringRelatedField(read_only=True)

    class Meta:
        model = BaseModel
        fields: ClassVar[list[str]] = [
            "id",
            "created_at",
            "updated_at",
            "created_by",
            "updated_by",
        ]
        read_only_fields: ClassVar[list[str]] = ["id", "created_at", "updated_at"]

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        for field_name, value in attrs.items():
            if isinstance(value, str):
                attrs[field_name] = self.sanitize_input(value)

        return super().validate(attrs)


class SanitizedCharField(serializers.CharField):
    """
    CharField that sanitizes input automatically.
    """

    def to_internal_value(self, data: str) -> str:
        data = super().to_internal_value(data)
        return SecurityMixin.sanitize_input(data)
