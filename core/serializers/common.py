import bleach
from rest_framework import serializers


class CleanCharField(serializers.CharField):
    """CharField that strips any HTML from free text."""

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        return bleach.clean(value, tags=[], strip=True)


def choice_values(choices):
    return [c[0] for c in choices]


class StringListField(serializers.ListField):
    child = CleanCharField(max_length=200)
