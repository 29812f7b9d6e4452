import bleach
from rest_framework import serializers


class CleanCharField(serializers.CharField):
    """CharField that strips any markup from the submitted text."""

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        return bleach.clean(value, tags=[], strip=True)


class StringListField(serializers.Field):
    """A list of short strings, accepted as a JSON list or comma separated text."""

    default_error_messages = {
        'invalid': 'Expected a list of strings or comma separated text.',
        'max_length': 'Ensure this field has no more than {max_length} characters in total.',
    }

    def __init__(self, *, max_length=1000, **kwargs):
        self.max_length = max_length
        super().__init__(**kwargs)

    def to_internal_value(self, data):
        if data is None or data == '':
            return []
        if isinstance(data, str):
            parts = data.split(',')
        elif isinstance(data, (list, tuple)) and all(isinstance(p, str) for p in data):
            parts = data
        else:
            self.fail('invalid')
        items = [bleach.clean(p.strip(), tags=[], strip=True) for p in parts]
        items = [p for p in items if p]
        if len(', '.join(items)) > self.max_length:
            self.fail('max_length', max_length=self.max_length)
        return items

    def to_representation(self, value):
        return list(value or [])
