"""
Email templates for procurement notifications.

Each builder returns a frozen ``EmailMessage`` with a plain-text body and an
HTML body.  User-supplied values are HTML-escaped in the HTML body.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from html import escape
from uuid import UUID

from procurement_kernel.domain.budget import format_money
from procurement_kernel.domain.dtos import EmailMessage


def short_id(request_id: UUID | str) -> str:
    return str(request_id)[:8]


class EmailTemplates:
    """
    Builds approval, broadcast, rejection and supplier emails.

    Args:
        app_base_url: Root URL of the procurement web app, without a
            trailing slash.
        currency_symbol: Prefix for rendered amounts.
    """

    def __init__(self, app_base_url: str, currency_symbol: str = "£"):
        self.app_base_url = app_base_url.rstrip("/")
        self.currency_symbol = currency_symbol

    def manage_url(self, request_id: UUID | str) -> str:
        return f"{self.app_base_url}/requests/{request_id}"

    def money(self, amount: Decimal) -> str:
        return f"{self.currency_symbol}{format_money(amount)}"

    def approval_request(
        self,
        to: str,
        approver_name: str,
        requester_name: str,
        request_id: UUID | str,
        total_amount: Decimal,
    ) -> EmailMessage:
        rid = short_id(request_id)
        url = self.manage_url(request_id)
        amount = self.money(total_amount)
        html = (
            "<h2>Purchase Request Approval Required</h2>"
            f"<p>Hello {escape(approver_name)},</p>"
            f"<p><strong>{escape(requester_name)}</strong> has submitted a new purchase "
            "request that requires your approval.</p>"
            "<ul>"
            f"<li><strong>Request ID:</strong> #{rid}</li>"
            f"<li><strong>Amount:</strong> {escape(amount)}</li>"
            "</ul>"
            "<p>Please review and approve or reject this request.</p>"
            f'<a href="{escape(url)}">Review Request</a>'
        )
        text = (
            f"Hello {approver_name},\n\n"
            f"{requester_name} has submitted a new purchase request that requires your approval.\n\n"
            f"Request ID: #{rid}\n"
            f"Amount: {amount}\n\n"
            f"Review it at {url}\n"
        )
        return EmailMessage(
            to=to,
            subject=f"Approval Required: Request #{rid}",
            html=html,
            text=text,
        )

    def new_request(
        self,
        to: str,
        recipient_name: str,
        requester_name: str,
        request_id: UUID | str,
        total_amount: Decimal,
    ) -> EmailMessage:
        rid = short_id(request_id)
        url = self.manage_url(request_id)
        amount = self.money(total_amount)
        html = (
            "<h2>New Purchase Request Raised</h2>"
            f"<p>Hello {escape(recipient_name)},</p>"
            f"<p><strong>{escape(requester_name)}</strong> has raised a new purchase request.</p>"
            "<ul>"
            f"<li><strong>Request ID:</strong> #{rid}</li>"
            f"<li><strong>Amount:</strong> {escape(amount)}</li>"
            "</ul>"
            f'<a href="{escape(url)}">View Request</a>'
        )
        text = (
            f"Hello {recipient_name},\n\n"
            f"{requester_name} has raised a new purchase request.\n\n"
            f"Request ID: #{rid}\n"
            f"Amount: {amount}\n\n"
            f"View it at {url}\n"
        )
        return EmailMessage(
            to=to,
            subject=f"New Purchase Request: #{rid}",
            html=html,
            text=text,
        )

    def rejection(
        self,
        to: str,
        requester_name: str,
        request_id: UUID | str,
        total_amount: Decimal,
        reason: str | None = None,
    ) -> EmailMessage:
        rid = short_id(request_id)
        amount = self.money(total_amount)
        reason_html = f"<p><strong>Reason:</strong> {escape(reason)}</p>" if reason else ""
        reason_text = f"Reason: {reason}\n\n" if reason else ""
        html = (
            "<h2>Purchase Request Rejected</h2>"
            f"<p>Hello {escape(requester_name)},</p>"
            "<p>Your purchase request has been <strong>rejected</strong> by the approver.</p>"
            "<ul>"
            f"<li><strong>Request ID:</strong> #{rid}</li>"
            f"<li><strong>Amount:</strong> {escape(amount)}</li>"
            "</ul>"
            f"{reason_html}"
            "<p>Please contact your manager for more details.</p>"
        )
        text = (
            f"Hello {requester_name},\n\n"
            "Your purchase request has been rejected by the approver.\n\n"
            f"Request ID: #{rid}\n"
            f"Amount: {amount}\n\n"
            f"{reason_text}"
            "Please contact your manager for more details.\n"
        )
        return EmailMessage(
            to=to,
            subject=f"Request Rejected: #{rid}",
            html=html,
            text=text,
        )

    def supplier_purchase_request(
        self,
        to: str,
        supplier_name: str,
        requester_name: str,
        requester_email: str | None,
        request_id: UUID | str,
        total_amount: Decimal,
        created_at: datetime,
        reason: str | None = None,
    ) -> EmailMessage:
        rid = short_id(request_id)
        amount = self.money(total_amount)
        requester = f"{requester_name} ({requester_email})" if requester_email else requester_name
        date_text = created_at.strftime("%d/%m/%Y")
        reason_html = f"<p><strong>Reason:</strong> {escape(reason)}</p>" if reason else ""
        reason_text = f"Reason: {reason}\n" if reason else ""
        html = (
            "<h2>New Purchase Request</h2>"
            f"<p>Hello {escape(supplier_name)},</p>"
            "<p>A new purchase request has been created:</p>"
            "<ul>"
            f"<li><strong>Request ID:</strong> #{rid}</li>"
            f"<li><strong>Date:</strong> {date_text}</li>"
            f"<li><strong>Requester:</strong> {escape(requester)}</li>"
            f"<li><strong>Total Amount:</strong> {escape(amount)}</li>"
            "</ul>"
            f"{reason_html}"
            "<p>Please review this request and respond at your earliest convenience.</p>"
        )
        text = (
            "New Purchase Request Notification\n\n"
            f"Hello {supplier_name},\n\n"
            "A new purchase request has been created:\n\n"
            f"Request ID: #{rid}\n"
            f"Date: {date_text}\n"
            f"Requester: {requester}\n"
            f"Total Amount: {amount}\n"
            f"{reason_text}\n"
            "Please review this request and respond at your earliest convenience.\n"
        )
        if requester_email:
            text += f"\nReply to: {requester_email}\n"
        return EmailMessage(
            to=to,
            subject=f"New Purchase Request #{rid} - {amount}",
            html=html,
            text=text,
        )
