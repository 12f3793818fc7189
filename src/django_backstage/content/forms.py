"""Forms for the content app."""

from django import forms


class ProductCheckoutForm(forms.Form):
    """Buyer details submitted to start a merchandise checkout."""

    product_id = forms.IntegerField(min_value=1)
    name = forms.CharField(max_length=200, strip=True)
    email = forms.EmailField(max_length=254)

    def clean_email(self) -> str:
        """Normalise the email address."""
        return self.cleaned_data["email"].strip().lower()


class NewsletterForm(forms.Form):
    """An email address joining or leaving the newsletter."""

    email = forms.EmailField(max_length=254)

    def clean_email(self) -> str:
        """Normalise the email address."""
        return self.cleaned_data["email"].strip().lower()


class CommentTargetForm(forms.Form):
    """The post, video and/or track a comment belongs to. At least one is required."""

    post_id = forms.IntegerField(min_value=1, required=False)
    video_id = forms.IntegerField(min_value=1, required=False)
    track_id = forms.IntegerField(min_value=1, required=False)

    def clean(self) -> dict[str, object]:
        """Reject input that names no target."""
        cleaned = super().clean()
        if not any(cleaned.get(name) for name in ("post_id", "video_id", "track_id")):
            raise forms.ValidationError("Provide a post_id, video_id or music_id.")
        return cleaned


class CommentForm(CommentTargetForm):
    """A visitor comment. Author and email are optional."""

    content = forms.CharField(max_length=1000, strip=True)
    author = forms.CharField(max_length=200, required=False, strip=True)
    email = forms.EmailField(max_length=254, required=False)

    def clean_email(self) -> str:
        """Normalise the email address."""
        return self.cleaned_data["email"].strip().lower()
