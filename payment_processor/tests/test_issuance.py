"""
Tests for ticket issuance and the side-effect tasks.
"""

import uuid
from unittest import mock

from django.core import mail
from django.core.files.storage import default_storage
from django.test import TestCase

from apps.bookings.models import Registration
from payment_processor.issuance import TicketIssuer
from payment_processor.reconciliation import ISSUE_TICKET, SEND_FAILURE_EMAIL, SEND_SUCCESS_EMAIL
from payment_processor.tasks import (
    issue_ticket_task,
    run_side_effects,
    send_booking_success_email_task,
    sync_pending_payments,
)
from .mixins import PaymentFixturesMixin, gateway_response


class TicketIssuerTestCase(PaymentFixturesMixin, TestCase):
    """Tests for TicketIssuer."""

    def setUp(self):
        super().setUp()
        self.issuer = TicketIssuer()
        self.key = f"tickets/{self.registration.id}.pdf"

    def tearDown(self):
        if default_storage.exists(self.key):
            default_storage.delete(self.key)

    def mark_paid(self):
        Registration.objects.filter(pk=self.registration.pk).update(payment_status=Registration.PAYMENT_PAID)

    def test_issue_for_paid_registration(self):
        self.mark_paid()

        result = self.issuer.issue(self.registration.id)

        self.registration.refresh_from_db()
        self.assertTrue(result.ok)
        self.assertEqual(result.storage_key, self.key)
        self.assertTrue(result.pdf.startswith(b'%PDF'))
        self.assertTrue(default_storage.exists(self.key))
        self.assertEqual(self.registration.ticket_url, result.ticket_url)
        self.assertTrue(result.ticket_url.endswith(self.key))

    def test_reissue_overwrites_in_place(self):
        self.mark_paid()
        first = self.issuer.issue(self.registration.id)
        second = self.issuer.issue(self.registration.id)

        self.assertEqual(first.storage_key, second.storage_key)
        self.assertEqual(self.issuer.load_pdf(self.registration.id), second.pdf)

    def test_unpaid_registration_is_skipped(self):
        result = self.issuer.issue(self.registration.id)

        self.assertFalse(result.ok)
        self.assertTrue(result.skipped)
        self.assertFalse(default_storage.exists(self.key))

    def test_unknown_registration(self):
        result = self.issuer.issue(uuid.uuid4())
        self.assertFalse(result.ok)
        self.assertEqual(result.error, 'Registration not found')

    def test_storage_failure_is_reported_not_raised(self):
        self.mark_paid()
        storage = mock.Mock()
        storage.exists.return_value = False
        storage.save.side_effect = OSError('bucket unavailable')

        result = TicketIssuer(storage=storage).issue(self.registration.id)

        self.registration.refresh_from_db()
        self.assertFalse(result.ok)
        self.assertIn('bucket unavailable', result.error)
        self.assertIsNone(self.registration.ticket_url)
        self.assertEqual(self.registration.payment_status, Registration.PAYMENT_PAID)


class SideEffectTaskTestCase(PaymentFixturesMixin, TestCase):
    """Tests for the payment Celery tasks."""

    def setUp(self):
        super().setUp()
        Registration.objects.filter(pk=self.registration.pk).update(payment_status=Registration.PAYMENT_PAID)

    def tearDown(self):
        key = f"tickets/{self.registration.id}.pdf"
        if default_storage.exists(key):
            default_storage.delete(key)

    def test_issue_ticket_then_email(self):
        result = issue_ticket_task.apply(args=[str(self.registration.id)], kwargs={'send_success_email': True}).get()

        self.assertTrue(result['ok'])
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].attachments[0][0], f"ticket-{self.registration.id}.pdf")

    def test_success_email_attaches_stored_ticket(self):
        TicketIssuer().issue(self.registration.id)

        result = send_booking_success_email_task.apply(args=[str(self.registration.id)]).get()

        self.assertEqual(result['status'], 'sent')
        self.assertEqual(len(mail.outbox[0].attachments), 1)

    def test_outbox_dispatch(self):
        run_side_effects(str(self.registration.id), [ISSUE_TICKET, SEND_SUCCESS_EMAIL])
        self.registration.refresh_from_db()
        self.assertIsNotNone(self.registration.ticket_url)
        self.assertEqual(len(mail.outbox), 1)

    def test_failure_email_dispatch(self):
        run_side_effects(str(self.registration.id), [SEND_FAILURE_EMAIL])
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('Payment failed', mail.outbox[0].subject)

    @mock.patch('payment_processor.tasks.issue_ticket_task.apply_async', side_effect=ConnectionError('broker down'))
    def test_enqueue_failure_is_swallowed(self, mock_apply):
        run_side_effects(str(self.registration.id), [ISSUE_TICKET])
        self.assertEqual(mock_apply.call_count, 1)


class SyncPendingPaymentsTestCase(PaymentFixturesMixin, TestCase):

    @mock.patch('payment_processor.gateway.requests.post')
    def test_syncs_pending_registrations(self, mock_post):
        payment = self.create_payment()
        mock_post.return_value = gateway_response({
            'status': True,
            'msg': {'txnid': payment.gateway_txn_id, 'status': 'success'},
        })

        result = sync_pending_payments.apply(kwargs={'batch_size': 10}).get()

        self.registration.refresh_from_db()
        self.assertEqual(result['synced'], 1)
        self.assertEqual(result['batches'], 1)
        self.assertEqual(self.registration.payment_status, Registration.PAYMENT_PAID)

    def test_nothing_to_sync(self):
        result = sync_pending_payments.apply().get()
        self.assertEqual(result['synced'], 0)
