"""Booking, status changes, availability, reminders and on-demand emails over HTTP."""
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

import pytest

from app.core.config import settings
from app.core.security import create_access_token
from app.models.user import User
from app.services import appointment_service, email_service
from app.services.appointment_service import business_today
from app.services.email_service import EmailResult
from app.services.notification_service import register_notification_handlers


@pytest.fixture
def next_week():
    return business_today() + timedelta(days=7)


@pytest.fixture
def notifications():
    register_notification_handlers()


def _booking(pets, services, d, t="10:00") -> dict:
    return {
        "pet_ids": [p.id for p in pets],
        "service_ids": [s.id for s in services],
        "scheduled_date": d.isoformat(),
        "scheduled_time": t,
        "notes": "Nervous with dryers",
    }


class TestBooking:
    async def test_client_books_and_everyone_is_emailed(
        self, client, client_headers, pets, services, next_week, notifications, sent_emails
    ):
        response = await client.post(
            "/api/v1/appointments", json=_booking(pets[:1], services[:1], next_week), headers=client_headers
        )

        assert response.status_code == 201
        body = response.json()
        assert len(body) == 1
        assert body[0]["status"] == "pending"
        assert body[0]["scheduled_time"] == "10:00:00"
        assert [e.to for e in sent_emails] == ["tutor@petcare.test", "owner@petcare.test"]

    async def test_booking_several_pets_and_services(self, client, client_headers, pets, services, next_week):
        response = await client.post(
            "/api/v1/appointments", json=_booking(pets, services, next_week), headers=client_headers
        )

        assert len(response.json()) == 4

    async def test_booking_in_the_past_conflicts(self, client, client_headers, pets, services):
        yesterday = business_today() - timedelta(days=1)

        response = await client.post(
            "/api/v1/appointments", json=_booking(pets, services, yesterday), headers=client_headers
        )

        assert response.status_code == 409

    async def test_booking_between_slots_conflicts(self, client, client_headers, pets, services, next_week):
        response = await client.post(
            "/api/v1/appointments", json=_booking(pets, services, next_week, t="10:17"), headers=client_headers
        )

        assert response.status_code == 409

    async def test_booking_a_blocked_slot_conflicts(
        self, client, client_headers, admin_headers, pets, services, next_week
    ):
        await client.post(
            "/api/v1/calendar/blocks", json={"date": next_week.isoformat(), "time": "10:00"}, headers=admin_headers
        )

        response = await client.post(
            "/api/v1/appointments", json=_booking(pets, services, next_week), headers=client_headers
        )

        assert response.status_code == 409

    async def test_empty_pet_list_is_invalid(self, client, client_headers, services, next_week):
        response = await client.post(
            "/api/v1/appointments", json=_booking([], services, next_week), headers=client_headers
        )

        assert response.status_code == 422

    async def test_client_lists_own_appointments(self, client, client_headers, make_appointment, next_week):
        await make_appointment(next_week, time(9, 0))

        response = await client.get("/api/v1/appointments", headers=client_headers)

        assert [a["scheduled_date"] for a in response.json()] == [next_week.isoformat()]


class TestAvailableSlots:
    async def test_booked_and_blocked_slots_are_unavailable(
        self, client, admin_headers, make_appointment, next_week
    ):
        await make_appointment(next_week, time(10, 0))
        await client.post(
            "/api/v1/calendar/blocks", json={"date": next_week.isoformat(), "time": "11:00"}, headers=admin_headers
        )

        response = await client.get("/api/v1/slots/available", params={"date": next_week.isoformat()})

        slots = {s["time"]: s["available"] for s in response.json()["slots"]}
        assert len(slots) == 13
        assert slots["09:00"] is True
        assert slots["10:00"] is False
        assert slots["11:00"] is False

    async def test_closed_day_has_no_slots(self, client, admin_headers, next_week):
        weekday = str((next_week.weekday() + 1) % 7)
        payload = {"schedule": {weekday: {"enabled": False, "start": "08:00", "end": "21:00"}}, "slot_duration": 60}
        await client.put("/api/v1/settings/schedule", json=payload, headers=admin_headers)

        response = await client.get("/api/v1/slots/available", params={"date": next_week.isoformat()})

        assert response.json()["slots"] == []

    async def test_started_slots_of_today_are_hidden(self, client, monkeypatch):
        now = datetime(2030, 1, 7, 14, 5, tzinfo=ZoneInfo("America/Sao_Paulo"))
        monkeypatch.setattr(appointment_service, "business_now", lambda: now)

        response = await client.get("/api/v1/slots/available", params={"date": "2030-01-07"})

        times = [s["time"] for s in response.json()["slots"]]
        assert times[0] == "15:00"
        assert "14:00" not in times
        assert len(times) == 6


class TestStatusChanges:
    async def test_admin_confirms_and_client_is_emailed(
        self, client, admin_headers, make_appointment, next_week, notifications, sent_emails
    ):
        appointment = await make_appointment(next_week, time(10, 0))

        response = await client.patch(
            f"/api/v1/appointments/{appointment.id}/status", json={"status": "confirmed"}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"
        assert len(sent_emails) == 1
        assert "Appointment Confirmed" in sent_emails[0].subject

    async def test_invalid_transition_conflicts(self, client, admin_headers, make_appointment, next_week):
        appointment = await make_appointment(next_week, time(10, 0), status="completed")

        response = await client.patch(
            f"/api/v1/appointments/{appointment.id}/status", json={"status": "cancelled"}, headers=admin_headers
        )

        assert response.status_code == 409

    async def test_unknown_appointment_is_not_found(self, client, admin_headers):
        response = await client.patch(
            "/api/v1/appointments/999/status", json={"status": "confirmed"}, headers=admin_headers
        )

        assert response.status_code == 404

    async def test_clients_cannot_change_status(self, client, client_headers, make_appointment, next_week):
        appointment = await make_appointment(next_week, time(10, 0))

        response = await client.patch(
            f"/api/v1/appointments/{appointment.id}/status", json={"status": "confirmed"}, headers=client_headers
        )

        assert response.status_code == 403

    async def test_allowed_transitions(self, client, admin_headers, make_appointment, next_week):
        appointment = await make_appointment(next_week, time(10, 0), status="confirmed")

        response = await client.get(f"/api/v1/appointments/{appointment.id}/transitions", headers=admin_headers)

        assert response.json() == {"id": appointment.id, "status": "confirmed", "allowed": ["completed", "cancelled"]}

    async def test_admin_listing_by_status(self, client, admin_headers, make_appointment, next_week):
        await make_appointment(next_week, time(9, 0))
        confirmed = await make_appointment(next_week, time(10, 0), status="confirmed")

        response = await client.get("/api/v1/appointments/admin", params={"status": "confirmed"}, headers=admin_headers)

        assert [a["id"] for a in response.json()] == [confirmed.id]
        assert response.json()[0]["service"]["name"] == "Banho"


class TestClientCancellation:
    async def test_client_cancels_and_admin_is_told(
        self, client, client_headers, make_appointment, next_week, notifications, sent_emails
    ):
        appointment = await make_appointment(next_week, time(10, 0))

        response = await client.delete(
            f"/api/v1/appointments/{appointment.id}", params={"reason": "Travel"}, headers=client_headers
        )

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert [e.to for e in sent_emails] == ["tutor@petcare.test", "owner@petcare.test"]

    async def test_cannot_cancel_others_appointment(self, client, admin_headers, make_appointment, next_week):
        appointment = await make_appointment(next_week, time(10, 0))

        response = await client.delete(f"/api/v1/appointments/{appointment.id}", headers=admin_headers)

        assert response.status_code == 404

    async def test_cancelled_slot_is_free_again(self, client, client_headers, make_appointment, next_week):
        appointment = await make_appointment(next_week, time(10, 0))

        await client.delete(f"/api/v1/appointments/{appointment.id}", headers=client_headers)
        response = await client.get("/api/v1/slots/available", params={"date": next_week.isoformat()})

        slots = {s["time"]: s["available"] for s in response.json()["slots"]}
        assert slots["10:00"] is True


class TestReminderCron:
    async def test_sends_tomorrows_reminders(self, client, make_appointment, sent_emails):
        tomorrow = business_today() + timedelta(days=1)
        await make_appointment(tomorrow, time(9, 0), status="confirmed")

        response = await client.get("/api/v1/cron/send-reminders")

        body = response.json()
        assert response.status_code == 200
        assert body["message"] == "Reminder emails sent"
        assert (body["total"], body["sent"], body["failed"]) == (1, 1, 0)
        assert body["date"] == tomorrow.isoformat()
        assert "Reminder" in sent_emails[0].subject

    async def test_nothing_scheduled(self, client):
        response = await client.get("/api/v1/cron/send-reminders")

        assert response.json()["message"] == "No appointments for tomorrow"

    async def test_secret_is_enforced(self, client, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", "s3cret")

        denied = await client.get("/api/v1/cron/send-reminders")
        allowed = await client.get("/api/v1/cron/send-reminders", headers={"Authorization": "Bearer s3cret"})

        assert denied.status_code == 401
        assert allowed.status_code == 200


class TestSendEmail:
    async def test_client_resends_own_reminder(self, client, client_headers, make_appointment, next_week, sent_emails):
        appointment = await make_appointment(next_week, time(10, 0))

        response = await client.post(
            "/api/v1/email/send",
            json={"type": "reminder", "appointment_id": appointment.id},
            headers=client_headers,
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["message_id"] == "<1@petcare.test>"
        assert sent_emails[0].to == "tutor@petcare.test"

    async def test_other_clients_appointment_is_hidden(self, client, session, make_appointment, next_week):
        appointment = await make_appointment(next_week, time(10, 0))
        stranger = User(email="stranger@petcare.test", name="Dora")
        session.add(stranger)
        await session.commit()

        response = await client.post(
            "/api/v1/email/send",
            json={"type": "reminder", "appointment_id": appointment.id},
            headers={"Authorization": f"Bearer {create_access_token(stranger.id)}"},
        )

        assert response.status_code == 404

    async def test_send_failure_is_reported(self, client, admin_headers, make_appointment, next_week, monkeypatch):
        appointment = await make_appointment(next_week, time(10, 0))
        monkeypatch.setattr(
            email_service,
            "_send_email_sync",
            lambda to_email, subject, html_body: EmailResult(success=False, error="Mailbox unavailable"),
        )

        response = await client.post(
            "/api/v1/email/send",
            json={"type": "confirmation", "appointment_id": appointment.id},
            headers=admin_headers,
        )

        assert response.status_code == 500
        assert response.json()["detail"] == "Mailbox unavailable"
