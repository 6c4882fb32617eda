"""Wires the API client, services and stores together."""

import logging
from typing import Optional

import httpx

from client.http import ApiClient, TokenStore
from client.services import AITutorService, AuthService, CheckInService, GoalService, JourneyService
from client.state import AITutorStore, AuthStore, CheckInStore, GoalStore, JourneyStore, RequestGate

logger = logging.getLogger(__name__)


class GoalAchieverClient:
    """
    One signed-in client session.

    Usage:
        async with GoalAchieverClient(base_url) as app:
            await app.auth.sign_in(token)
            await app.goals.fetch_goals()
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
        gate: Optional[RequestGate] = None
    ):
        self.api = ApiClient(
            base_url=base_url,
            token_store=TokenStore(token),
            timeout=timeout,
            transport=transport
        )

        self.goal_service = GoalService(self.api)
        self.journey_service = JourneyService(self.api)
        self.checkin_service = CheckInService(self.api)
        self.tutor_service = AITutorService(self.api)
        self.auth_service = AuthService(self.api)

        self.goals = GoalStore(self.goal_service)
        self.journeys = JourneyStore(self.journey_service)
        self.checkins = CheckInStore(self.checkin_service)
        self.tutor = AITutorStore(self.tutor_service, gate)
        self.auth = AuthStore(
            self.api,
            self.auth_service,
            dependents=[self.goals, self.journeys, self.checkins, self.tutor]
        )

    async def health(self) -> dict:
        return await self.auth_service.health()

    async def aclose(self) -> None:
        await self.api.aclose()

    async def __aenter__(self) -> "GoalAchieverClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
