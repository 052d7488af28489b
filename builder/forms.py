from django import forms

from .services.automations import AUTOMATION_STATUSES
from .services.generator import TRIGGER_EVENTS, TRIGGER_TYPES

STATUS_CHOICES = [(s, s.title()) for s in AUTOMATION_STATUSES]

PASSWORD_MISMATCH = "Passwords do not match."


class LoginForm(forms.Form):
    email = forms.EmailField(
        required=True,
        label="Email",
        widget=forms.EmailInput(attrs={
            'placeholder': 'you@example.com',
            'autocomplete': 'email'
        })
    )
    password = forms.CharField(
        required=True,
        label="Password",
        widget=forms.PasswordInput(attrs={'autocomplete': 'current-password'}),
    )


class SignupForm(forms.Form):
    """Sign-up form; the password confirmation is checked before anything is sent."""
    first_name = forms.CharField(max_length=100, required=False, label="First name")
    last_name = forms.CharField(max_length=100, required=False, label="Last name")
    email = forms.EmailField(
        required=True,
        label="Email",
        widget=forms.EmailInput(attrs={
            'placeholder': 'you@example.com',
            'autocomplete': 'email'
        })
    )
    password = forms.CharField(
        required=True,
        label="Password",
        widget=forms.PasswordInput(attrs={'autocomplete': 'new-password'}),
    )
    confirm_password = forms.CharField(
        required=True,
        label="Confirm password",
        widget=forms.PasswordInput(attrs={'autocomplete': 'new-password'}),
    )

    def clean(self):
        cleaned_data = super().clean()
        password = cleaned_data.get("password")
        confirm = cleaned_data.get("confirm_password")
        if password and confirm and password != confirm:
            raise forms.ValidationError(PASSWORD_MISMATCH)
        return cleaned_data


class ResetPasswordForm(forms.Form):
    email = forms.EmailField(
        required=True,
        label="Email",
        widget=forms.EmailInput(attrs={'placeholder': 'you@example.com'}),
    )


class NewPasswordForm(forms.Form):
    new_password = forms.CharField(
        required=True,
        min_length=6,
        label="New password",
        widget=forms.PasswordInput(attrs={'autocomplete': 'new-password'}),
    )
    confirm_new_password = forms.CharField(
        required=True,
        label="Confirm new password",
        widget=forms.PasswordInput(attrs={'autocomplete': 'new-password'}),
    )

    def clean(self):
        cleaned_data = super().clean()
        if (
            cleaned_data.get("new_password")
            and cleaned_data.get("confirm_new_password")
            and cleaned_data["new_password"] != cleaned_data["confirm_new_password"]
        ):
            raise forms.ValidationError(PASSWORD_MISMATCH)
        return cleaned_data


class ContactForm(forms.Form):
    SUBJECT_CHOICES = [
        ("sales", "Sales"),
        ("support", "Technical support"),
        ("partnership", "Partnership"),
        ("other", "Other"),
    ]

    name = forms.CharField(max_length=100, required=True)
    email = forms.EmailField(required=True)
    company = forms.CharField(max_length=100, required=False)
    subject = forms.ChoiceField(choices=SUBJECT_CHOICES, initial="sales")
    message = forms.CharField(widget=forms.Textarea, max_length=5000, required=True)


class PromptForm(forms.Form):
    prompt = forms.CharField(
        required=True,
        label="Describe your automation",
        widget=forms.Textarea(attrs={
            'placeholder': 'Describe your automation here...',
            'rows': 8,
        }),
    )


class AutomationForm(forms.Form):
    name = forms.CharField(max_length=200, required=True)
    description = forms.CharField(widget=forms.Textarea(attrs={'rows': 3}), required=False)
    steps = forms.JSONField(required=False, widget=forms.HiddenInput)
    triggers = forms.JSONField(required=False, widget=forms.HiddenInput)
    schedule = forms.CharField(max_length=100, required=False)
    status = forms.ChoiceField(choices=STATUS_CHOICES, initial="active", required=False)
    trigger_type = forms.ChoiceField(choices=TRIGGER_TYPES, initial="event", required=False)
    trigger_event = forms.ChoiceField(choices=TRIGGER_EVENTS, initial="new_email", required=False)

    def clean_steps(self):
        steps = self.cleaned_data.get("steps") or []
        if not isinstance(steps, list) or not all(isinstance(step, dict) for step in steps):
            raise forms.ValidationError("Steps must be a list of objects.")
        return steps

    def clean_triggers(self):
        triggers = self.cleaned_data.get("triggers") or []
        if isinstance(triggers, str):
            triggers = [triggers]
        if not isinstance(triggers, list):
            raise forms.ValidationError("Triggers must be a list.")
        return [str(trigger) for trigger in triggers]

    def clean_status(self):
        return self.cleaned_data.get("status") or "active"


class StatusForm(forms.Form):
    status = forms.ChoiceField(choices=STATUS_CHOICES, required=True)


class ProfileForm(forms.Form):
    first_name = forms.CharField(max_length=100, required=False, label="First name")
    last_name = forms.CharField(max_length=100, required=False, label="Last name")
    company = forms.CharField(max_length=100, required=False)
    job_title = forms.CharField(max_length=100, required=False, label="Role")


class PreferencesForm(forms.Form):
    THEME_CHOICES = [("light", "Light"), ("dark", "Dark"), ("system", "System")]
    LANGUAGE_CHOICES = [
        ("en", "English"),
        ("it", "Italian"),
        ("es", "Spanish"),
        ("fr", "French"),
        ("de", "German"),
    ]
    TIMEZONE_CHOICES = [
        ("cet", "CET (Central Europe)"),
        ("utc", "UTC"),
        ("est", "EST (US East)"),
        ("pst", "PST (US West)"),
    ]

    theme = forms.ChoiceField(choices=THEME_CHOICES, required=False)
    language = forms.ChoiceField(choices=LANGUAGE_CHOICES, required=False)
    timezone = forms.ChoiceField(choices=TIMEZONE_CHOICES, required=False)
    email_notifications = forms.BooleanField(required=False)
    error_notifications = forms.BooleanField(required=False)
    success_notifications = forms.BooleanField(required=False)
    product_updates = forms.BooleanField(required=False)
    marketing_emails = forms.BooleanField(required=False)
