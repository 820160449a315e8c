# apps/core/forms.py

from django import forms
from django.core.exceptions import ValidationError

from apps.board.recurrence import (
    DAY_NAMES,
    FREQUENCIES,
    LAST_FULL_WEEK,
    MONDAY,
    MONTHLY_PATTERNS,
    SATURDAY,
    SUNDAY,
    WEEK_OF_MONTH_VALUES,
)

DAY_CHOICES = [(index, name) for index, name in enumerate(DAY_NAMES)]
WEEK_OF_MONTH_CHOICES = [(value, str(value)) for value in WEEK_OF_MONTH_VALUES]

# Serialization order of the stored JSON
CONFIG_KEYS = [
    'frequency', 'interval', 'daysOfWeek', 'monthlyPattern', 'dayOfMonth',
    'weekOfMonth', 'monthlyDayOfWeek', 'endDate', 'endAfterOccurrences',
]


class RecurringConfigForm(forms.Form):
    """
    Validates a recurring configuration coming from a JSON payload

    Field names keep the camelCase keys of the stored JSON so the
    payload can be bound directly: RecurringConfigForm(data=payload).
    """

    frequency = forms.ChoiceField(choices=[(value, value) for value in FREQUENCIES])
    interval = forms.IntegerField(min_value=1, max_value=99, required=False)
    daysOfWeek = forms.TypedMultipleChoiceField(
        choices=DAY_CHOICES,
        coerce=int,
        required=False
    )
    monthlyPattern = forms.ChoiceField(
        choices=[(value, value) for value in MONTHLY_PATTERNS],
        required=False
    )
    dayOfMonth = forms.IntegerField(min_value=1, max_value=31, required=False)
    weekOfMonth = forms.TypedChoiceField(
        choices=WEEK_OF_MONTH_CHOICES,
        coerce=int,
        empty_value=None,
        required=False
    )
    monthlyDayOfWeek = forms.TypedChoiceField(
        choices=DAY_CHOICES,
        coerce=int,
        empty_value=None,
        required=False
    )
    endDate = forms.DateField(required=False)
    endAfterOccurrences = forms.IntegerField(min_value=1, max_value=999, required=False)

    def clean_interval(self):
        return self.cleaned_data.get('interval') or 1

    def clean(self):
        cleaned_data = super().clean()
        frequency = cleaned_data.get('frequency')

        if cleaned_data.get('endDate') and cleaned_data.get('endAfterOccurrences'):
            raise ValidationError(
                "Choose either an end date or a number of occurrences, not both"
            )

        if frequency in ('weekly', 'biweekly') and not cleaned_data.get('daysOfWeek'):
            self.add_error('daysOfWeek', "Select at least one day of the week")

        if cleaned_data.get('monthlyPattern') == 'dayOfWeek':
            if cleaned_data.get('weekOfMonth') is None:
                self.add_error('weekOfMonth', "Week of month is required for this pattern")
            if cleaned_data.get('monthlyDayOfWeek') is None:
                self.add_error('monthlyDayOfWeek', "Day of week is required for this pattern")

        # The last full business week has no weekend days
        if (
            cleaned_data.get('weekOfMonth') == LAST_FULL_WEEK
            and cleaned_data.get('monthlyDayOfWeek') in (SUNDAY, SATURDAY)
        ):
            cleaned_data['monthlyDayOfWeek'] = MONDAY

        return cleaned_data

    def to_config(self):
        """Cleaned data as the JSON dict stored on tasks"""
        config = {}
        for key in CONFIG_KEYS:
            value = self.cleaned_data.get(key)
            if value is None or value == [] or value == '':
                continue
            if key == 'endDate':
                value = value.isoformat()
            elif key == 'daysOfWeek':
                value = sorted(set(value))
            config[key] = value
        return config


def parse_recurring_config(data):
    """
    Validates a recurring config payload

    Returns the normalized dict, None for an empty payload,
    raises ValidationError for anything malformed.
    """
    if not data:
        return None

    if not isinstance(data, dict):
        raise ValidationError("Recurring configuration must be an object")

    form = RecurringConfigForm(data=data)
    if not form.is_valid():
        raise ValidationError(form.errors.as_data())

    return form.to_config()
