"""Notification event catalogue: wording, deep links and email template per event type"""

from dataclasses import dataclass
from typing import Optional


class _Blank(dict):
    def __missing__(self, key):
        return ""


@dataclass(frozen=True)
class NotificationEvent:
    title: str
    message: str
    template_id: str
    status: Optional[str] = None  # Application status shown by the stall-status template
    brand_link_suffix: str = ""
    audience: str = "brand"  # Primary recipient; managers are always included

    def render_message(self, payload: dict) -> str:
        return self.message.format_map(_Blank(payload))

    def link_for(self, role: str, payload: dict) -> str:
        link = "/dashboard/{role}/exhibitions/{exhibition_id}/stalls/{stall_id}".format_map(
            _Blank(payload, role=role)
        )
        if role == "brand":
            link += self.brand_link_suffix
        return link


NOTIFICATION_EVENTS = {
    "application_received": NotificationEvent(
        title="New Stall Application",
        message="{brand_name} applied for {stall_name} at {exhibition_title}",
        template_id="application-received",
        audience="organiser",
    ),
    "application_approved": NotificationEvent(
        title="Stall Application Approved",
        message="The application for {stall_name} at {exhibition_title} was approved",
        template_id="stall-status",
        status="approved",
        brand_link_suffix="/payment",
    ),
    "application_rejected": NotificationEvent(
        title="Stall Application Rejected",
        message="The application for {stall_name} at {exhibition_title} was rejected",
        template_id="stall-status",
        status="rejected",
    ),
    "payment_required": NotificationEvent(
        title="Payment Required",
        message="Payment is required to secure {stall_name} at {exhibition_title}",
        template_id="stall-status",
        status="payment_pending",
        brand_link_suffix="/payment",
    ),
    "payment_submitted": NotificationEvent(
        title="Stall Payment Submitted",
        message="{brand_name} submitted a payment of {amount} for {stall_name}",
        template_id="payment-submitted",
        audience="organiser",
    ),
    "booking_confirmed": NotificationEvent(
        title="Stall Booking Confirmed",
        message="The booking for {stall_name} at {exhibition_title} is confirmed",
        template_id="stall-status",
        status="booking_confirmed",
    ),
}
