"""Tests for API endpoints."""
import pytest
from datetime import date
from decimal import Decimal
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from farealert import scheduler
from farealert.config import get_settings
from farealert.models import AlertEvent, PriceObservation, QueuedMessage
from farealert.services.deal_classifier import classify
from farealert.services.fare_gateway import FOUND, FareLookup
from farealert.services.notification_queue import NotificationQueue
from farealert.services.price_store import StatisticsSnapshot


@pytest.fixture
def queued_alert(db_session, make_destination, make_subscription, now):
    destination = make_destination()
    subscription = make_subscription(destination, threshold=500)
    stats = StatisticsSnapshot(destination_id=destination.id, sample_count=3, avg_90day=600.0, all_time_low=480.0)
    return NotificationQueue(db_session).record_alert(
        subscription, destination, Decimal("450.00"), classify(Decimal("450.00"), stats), stats,
        date(2026, 11, 18), now,
    )


class TestHealthEndpoint:
    async def test_health_check(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "database": "healthy"}

    async def test_health_degraded_when_database_fails(self, client, db_session, monkeypatch):
        def unavailable(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("unable to open database file"))

        monkeypatch.setattr(db_session, "execute", unavailable)
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["database"].startswith("unhealthy")

    async def test_ping(self, client):
        response = await client.get("/ping")
        assert response.json() == {"status": "ok"}


class TestTracking:
    async def test_open_returns_pixel_and_marks_event(self, client, db_session, queued_alert):
        response = await client.get("/track/open", params={"queue_id": queued_alert.queued_message_id})

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/gif"
        assert response.content.startswith(b"GIF89a")
        assert "no-cache" in response.headers["cache-control"]

        event = db_session.get(AlertEvent, queued_alert.alert_event_id)
        db_session.refresh(event)
        assert event.email_opened is True
        assert event.opened_at is not None

    async def test_open_unknown_message_still_returns_pixel(self, client, db_session):
        response = await client.get("/track/open", params={"queue_id": 4242})
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/gif"

    async def test_click_redirects_and_marks_event(self, client, db_session, queued_alert):
        target = "https://fares.example.com/deals/lisbon"
        response = await client.get(
            "/track/click", params={"queue_id": queued_alert.queued_message_id, "url": target}
        )

        assert response.status_code == 302
        assert response.headers["location"] == target

        message = db_session.get(QueuedMessage, queued_alert.queued_message_id)
        db_session.refresh(message)
        assert message.link_clicked is True

    async def test_click_rejects_non_http_target(self, client, db_session, queued_alert):
        response = await client.get(
            "/track/click", params={"queue_id": queued_alert.queued_message_id, "url": "javascript:alert(1)"}
        )
        assert response.status_code == 302
        assert response.headers["location"] == get_settings().base_url

    async def test_click_requires_url(self, client, db_session):
        response = await client.get("/track/click", params={"queue_id": 1})
        assert response.status_code == 422


class TestPipelineAPI:
    async def test_overview(self, client, db_session, make_destination, queued_alert, now):
        make_destination(airport_code="FCO", city_name="Rome", country="Italy", is_active=False)
        db_session.add(PriceObservation(
            destination_id=1, price=Decimal("450.00"), outbound_date=date(2026, 11, 18), observed_at=now,
        ))
        db_session.commit()

        response = await client.get("/api/pipeline/overview")
        assert response.status_code == 200
        data = response.json()
        assert data["active_destinations"] == 1
        assert data["observations"] == 1
        assert data["active_subscriptions"] == 1
        assert data["alerts_total"] == 1
        assert data["queued_by_status"] == {"pending": 1, "sent": 0, "failed": 0}
        assert data["enqueue_failures"] == 0
        assert data["open_rate"] == 0.0

    async def test_overview_empty(self, client, db_session):
        data = (await client.get("/api/pipeline/overview")).json()
        assert data["alerts_total"] == 0
        assert data["open_rate"] is None

    async def test_run_returns_pipeline_result(self, client, monkeypatch):
        async def fake_run():
            return {"success": True, "destinationsChecked": 2, "alertsTriggered": 1, "results": []}

        monkeypatch.setattr("farealert.api.pipeline.run_price_check", fake_run)
        response = await client.post("/api/pipeline/run")

        assert response.status_code == 200
        assert response.json()["destinationsChecked"] == 2

    async def test_scheduler_status_when_stopped(self, client):
        data = (await client.get("/api/pipeline/scheduler")).json()
        assert data["running"] is False


class StaticGateway:
    def __init__(self, price):
        self.price = price

    def begin_run(self):
        pass

    async def authenticate(self):
        pass

    async def fetch_lowest_price(self, origin, destination_code, departure_date):
        return FareLookup(status=FOUND, destination_code=destination_code, price=Decimal(str(self.price)))


class TestRunPriceCheck:
    async def test_runs_pipeline_with_fresh_session(self, db_session, make_destination, monkeypatch):
        make_destination()
        monkeypatch.setattr(scheduler, "SessionLocal", sessionmaker(bind=db_session.get_bind()))
        monkeypatch.setattr(scheduler, "get_fare_gateway", lambda: StaticGateway(450))

        result = await scheduler.run_price_check()

        assert result["success"] is True
        assert result["destinationsChecked"] == 1
        assert result["results"][0]["destination"] == "Lisbon"
        assert db_session.query(PriceObservation).count() == 1

    async def test_refuses_overlapping_run(self):
        async with scheduler._run_lock:
            result = await scheduler.run_price_check()

        assert result["success"] is False
        assert result["error"] == "A price check is already running"
        assert result["destinationsChecked"] == 0
