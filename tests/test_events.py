"""In-process appointment events and the e-mail notifications they trigger."""
from datetime import time, timedelta

from app.services.appointment_service import business_today
from app.services.events import (
    AppointmentEvent,
    AppointmentEventType,
    publish,
    publish_all,
    subscribe,
)
from app.services.notification_service import register_notification_handlers


class TestEventBus:
    async def test_subscriber_receives_matching_events_only(self):
        received = []

        async def handler(event):
            received.append(event)

        subscribe(AppointmentEventType.CONFIRMED, handler)

        await publish(AppointmentEvent(AppointmentEventType.CONFIRMED, 1))
        await publish(AppointmentEvent(AppointmentEventType.CANCELLED, 2))

        assert [e.appointment_id for e in received] == [1]

    async def test_subscribing_twice_delivers_once(self):
        received = []

        async def handler(event):
            received.append(event)

        subscribe(AppointmentEventType.REQUESTED, handler)
        subscribe(AppointmentEventType.REQUESTED, handler)

        await publish(AppointmentEvent(AppointmentEventType.REQUESTED, 1))

        assert len(received) == 1

    async def test_failing_handler_does_not_stop_others(self, caplog):
        received = []

        async def broken(event):
            raise RuntimeError("SMTP down")

        async def working(event):
            received.append(event)

        subscribe(AppointmentEventType.REQUESTED, broken)
        subscribe(AppointmentEventType.REQUESTED, working)

        await publish(AppointmentEvent(AppointmentEventType.REQUESTED, 5))

        assert len(received) == 1
        assert "SMTP down" in caplog.text

    async def test_publish_all_keeps_order(self):
        received = []

        async def handler(event):
            received.append(event.appointment_id)

        subscribe(AppointmentEventType.REQUESTED, handler)

        await publish_all([AppointmentEvent(AppointmentEventType.REQUESTED, i) for i in (3, 1, 2)])

        assert received == [3, 1, 2]


class TestNotifications:
    async def test_request_emails_client_and_admin(self, session_maker, make_appointment, sent_emails):
        register_notification_handlers()
        appointment = await make_appointment(business_today() + timedelta(days=2), time(10, 0))

        await publish(AppointmentEvent(AppointmentEventType.REQUESTED, appointment.id))

        assert [e.to for e in sent_emails] == ["tutor@petcare.test", "owner@petcare.test"]
        assert "Appointment Requested - Rex" in sent_emails[0].subject
        assert "New Appointment - Rex (Bruno Tutor)" in sent_emails[1].subject

    async def test_confirmation_emails_client(self, session_maker, make_appointment, sent_emails):
        register_notification_handlers()
        appointment = await make_appointment(business_today() + timedelta(days=2), time(10, 0))

        await publish(AppointmentEvent(AppointmentEventType.CONFIRMED, appointment.id))

        assert len(sent_emails) == 1
        assert "Appointment Confirmed" in sent_emails[0].subject

    async def test_admin_cancellation_only_emails_client(self, session_maker, make_appointment, sent_emails):
        register_notification_handlers()
        appointment = await make_appointment(business_today() + timedelta(days=2), time(10, 0))

        await publish(AppointmentEvent(AppointmentEventType.CANCELLED, appointment.id, cancelled_by="admin"))

        assert [e.to for e in sent_emails] == ["tutor@petcare.test"]
        assert "by our team" in sent_emails[0].html

    async def test_client_cancellation_also_tells_admin(self, session_maker, make_appointment, sent_emails):
        register_notification_handlers()
        appointment = await make_appointment(business_today() + timedelta(days=2), time(10, 0))

        await publish(
            AppointmentEvent(AppointmentEventType.CANCELLED, appointment.id, cancelled_by="client", reason="Travel")
        )

        assert [e.to for e in sent_emails] == ["tutor@petcare.test", "owner@petcare.test"]
        assert "Travel" in sent_emails[1].html

    async def test_missing_appointment_sends_nothing(self, session_maker, sent_emails):
        register_notification_handlers()

        await publish(AppointmentEvent(AppointmentEventType.CONFIRMED, 404))

        assert sent_emails == []
