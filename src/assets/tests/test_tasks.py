"""Tests for assets Celery tasks."""

from django.core import mail


def _payload(**overrides):
    payload = {
        "rma_number": "RMA-20260412-0001",
        "status": "Requested",
        "ticket_number": "TKT-20260412-0003",
        "site_name": "Central Station",
        "asset_code": "A001",
        "asset_type": "Camera",
        "serial_number": "SN-OLD-001",
        "requested_by": "Field Engineer",
        "reason": "No video <since> 9am",
        "recipients": ["supervisor@example.com", "engineer@example.com"],
    }
    payload.update(overrides)
    return payload


class TestSendRMANotification:
    def test_sends_email(self, settings):
        from assets.tasks import send_rma_notification

        settings.SITE_NAME = "FieldOps"
        send_rma_notification(_payload())

        assert len(mail.outbox) == 1
        msg = mail.outbox[0]
        assert msg.subject == (
            "[FieldOps] RMA RMA-20260412-0001 raised for A001"
        )
        assert msg.to == ["supervisor@example.com", "engineer@example.com"]
        assert "Ticket: TKT-20260412-0003" in msg.body
        html, mimetype = msg.alternatives[0]
        assert mimetype == "text/html"
        assert "&lt;since&gt;" in html

    def test_blank_serial_shown_as_dash(self):
        from assets.tasks import send_rma_notification

        send_rma_notification(_payload(serial_number="", requested_by=""))
        assert "Serial: -" in mail.outbox[0].body
        assert "Requested by: -" in mail.outbox[0].body
