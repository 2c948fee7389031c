"""
HTTP client for the hosted booking backend (PostgREST-style REST API).
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests
from pendulum import DateTime
from pydantic import ValidationError

from ..domain.conflicts import conflicting
from ..domain.exceptions import BookingValidationError, SlotConflictError, TransientError
from ..domain.models import BookingConfirmation, BookingRequest, ExistingAppointment, ScheduleConfig, Service
from .records import (
    AppointmentRecord,
    BookingSettingsRecord,
    PublicBookingRecord,
    ServiceRecord,
    booking_request_payload,
)

logger = logging.getLogger(__name__)

PENDING_STATUS = "pending"

# Appointments starting this long before a request can still overlap it
COMMIT_LOOKBACK_HOURS = 24


class HttpBookingClient:
    """
    Client for the booking backend's REST tables.

    Implements the repository and commit ports. Blocking ``requests`` calls
    run in a worker thread so the async service stays responsive.

    Commits re-read appointments and pending requests and refuse any
    overlap before inserting. A conflict reported by the backend itself
    (HTTP 409) maps to the same SlotConflictError.
    """

    REST_PATH = "/rest/v1"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        default_timezone: str = "America/New_York",
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the backend client.

        Args:
            base_url: Backend root URL, e.g. https://<project>.supabase.co
            api_key: Public (anon) API key
            timeout: Per-request timeout in seconds
            default_timezone: Provider zone when settings carry none
            session: Optional requests session (tests inject a mock)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.default_timezone = default_timezone
        self.session = session or requests.Session()
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json"
        }

    async def get_schedule_config(self, slug: str) -> Optional[ScheduleConfig]:
        rows = await self._get(
            "booking_settings",
            {"booking_url_slug": f"eq.{slug}", "enabled": "eq.true", "select": "*", "limit": "1"}
        )
        if not rows:
            return None

        try:
            record = BookingSettingsRecord(**rows[0])
            return record.to_domain(self.default_timezone)
        except (ValidationError, ValueError) as exc:
            logger.error("Invalid booking settings for %s: %s", slug, exc)
            return None

    async def list_services(self, provider_id: str) -> List[Service]:
        rows = await self._get(
            "services",
            {
                "user_id": f"eq.{provider_id}",
                "active": "eq.true",
                "available_for_online_booking": "eq.true",
                "order": "display_order",
                "select": "*"
            }
        )
        services: List[Service] = []
        for row in rows:
            try:
                services.append(ServiceRecord(**row).to_domain())
            except ValidationError as exc:
                logger.warning("Skipping invalid service %s: %s", row.get("name"), exc)
        return services

    async def list_appointments(
        self,
        provider_id: str,
        start: DateTime,
        end: DateTime
    ) -> List[ExistingAppointment]:
        """
        Return the calendar between start and end.

        Pending public bookings are included: until the provider approves
        them they exist only in ``public_bookings``, yet they already hold
        their slot. Approved requests are copied into ``appointments``.
        """
        utc_start = start.in_timezone("UTC").to_iso8601_string()
        utc_end = end.in_timezone("UTC").to_iso8601_string()

        appointment_rows = await self._get(
            "appointments",
            [
                ("user_id", f"eq.{provider_id}"),
                ("start_time", f"gte.{utc_start}"),
                ("start_time", f"lt.{utc_end}"),
                ("status", "neq.cancelled"),
                ("select", "start_time,duration,status"),
            ]
        )
        pending_rows = await self._get(
            "public_bookings",
            [
                ("practitioner_user_id", f"eq.{provider_id}"),
                ("requested_time", f"gte.{utc_start}"),
                ("requested_time", f"lt.{utc_end}"),
                ("status", f"eq.{PENDING_STATUS}"),
                ("select", "requested_time,duration_minutes,status"),
            ]
        )

        try:
            appointments = [AppointmentRecord(**row).to_domain() for row in appointment_rows]
            appointments.extend(PublicBookingRecord(**row).to_domain() for row in pending_rows)
        except ValidationError as exc:
            # An unreadable appointment must not silently free its slot
            raise TransientError(f"Could not parse appointment data: {exc}") from exc
        return appointments

    async def commit(self, request: BookingRequest) -> BookingConfirmation:
        """
        Re-check the calendar, then insert the booking request.

        The HTTP 409 mapping in ``_request`` still covers a request that
        lands between the re-check and the insert.
        """
        requested = request.time_range
        calendar = await self.list_appointments(
            request.provider_id,
            requested.start.subtract(hours=COMMIT_LOOKBACK_HOURS),
            requested.end
        )
        if conflicting(requested, calendar):
            raise SlotConflictError(
                "This time slot was just booked by someone else. Please choose another time."
            )

        payload = booking_request_payload(request)
        rows = await asyncio.to_thread(self._post, "public_bookings", payload)

        row = rows[0] if rows else {}
        return BookingConfirmation(
            booking_id=str(row.get("id", "")),
            request=request,
            status=row.get("status", request.status)
        )

    async def _get(self, table: str, params) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._request, "GET", table, params=params)

    def _post(self, table: str, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._request(
            "POST",
            table,
            json=[payload],
            extra_headers={"Prefer": "return=representation"}
        )

    def _request(
        self,
        method: str,
        table: str,
        params=None,
        json=None,
        extra_headers: Optional[Dict[str, str]] = None
    ) -> List[Dict[str, Any]]:
        """
        Perform a request and translate failures into booking errors.

        Raises:
            SlotConflictError: HTTP 409 (unique constraint violation)
            BookingValidationError: HTTP 400/422
            TransientError: Network failures and any other error status
        """
        url = f"{self.base_url}{self.REST_PATH}/{table}"
        headers = dict(self.headers, **(extra_headers or {}))

        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise TransientError(f"Booking service unreachable: {e}") from e

        if response.status_code == 409:
            raise SlotConflictError(
                "This time slot was just booked by someone else. Please choose another time."
            )
        if response.status_code in (400, 422):
            raise BookingValidationError(f"Booking rejected: {self._error_message(response)}")
        if response.status_code >= 400:
            raise TransientError(
                f"Booking service error {response.status_code}: {self._error_message(response)}"
            )

        if not response.content:
            return []
        try:
            data = response.json()
        except ValueError as e:
            raise TransientError(f"Invalid response from booking service: {e}") from e
        return data if isinstance(data, list) else [data]

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason or ""
        if isinstance(body, dict):
            return str(body.get("message") or body.get("error") or body)
        return str(body)
