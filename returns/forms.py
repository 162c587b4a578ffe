from __future__ import annotations

from typing import Any, Optional

from django import forms

from .models import ReturnMessage, ReturnRequest


class ReturnRequestCreateForm(forms.Form):
    reason = forms.ChoiceField(choices=ReturnRequest.Reason.choices)
    description = forms.CharField(required=False, max_length=5000)

    # [{"order_item_index": 0, "quantity": 1, "reason": "..."}]
    return_items = forms.JSONField(required=False)
    # ["uploads/abc.jpg", "https://...", {"kind": "stored", "key": ...}]
    evidence = forms.JSONField(required=False)

    requested_amount = forms.DecimalField(required=False, max_digits=10, decimal_places=2, min_value=0)

    def clean_return_items(self):
        value = self.cleaned_data.get("return_items") or []
        if not isinstance(value, list):
            raise forms.ValidationError("return_items must be a list.")
        return value

    def clean_evidence(self):
        value = self.cleaned_data.get("evidence") or []
        if not isinstance(value, list):
            raise forms.ValidationError("evidence must be a list.")
        return value


class ReturnStatusForm(forms.Form):
    status = forms.ChoiceField(choices=ReturnRequest.Status.choices)
    approved_amount = forms.DecimalField(required=False, max_digits=10, decimal_places=2, min_value=0)
    admin_notes = forms.CharField(required=False, strip=True)
    tracking_number = forms.CharField(required=False, max_length=64, strip=True)
    notify_customer = forms.BooleanField(required=False)

    def _sent(self, name: str) -> Optional[Any]:
        """None when the client left the field out, so the service keeps the stored value."""
        if name not in self.data:
            return None
        return self.cleaned_data.get(name)

    def service_kwargs(self) -> dict[str, Any]:
        return {
            "new_status": self.cleaned_data["status"],
            "approved_amount": self.cleaned_data.get("approved_amount"),
            "admin_notes": self._sent("admin_notes"),
            "tracking_number": self._sent("tracking_number"),
            "notify_customer": self.cleaned_data["notify_customer"] if "notify_customer" in self.data else True,
        }


class ReturnMessageForm(forms.Form):
    body = forms.CharField(required=False, strip=True)
    attachments = forms.JSONField(required=False)
    message_type = forms.ChoiceField(
        required=False,
        choices=[("", "---------")] + list(ReturnMessage.MessageType.choices),
    )

    def clean_attachments(self):
        value = self.cleaned_data.get("attachments") or []
        if not isinstance(value, list):
            raise forms.ValidationError("attachments must be a list.")
        return value
