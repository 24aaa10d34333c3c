"""
Agent service for field technician records.

HR identity (name, employee ID) is fixed at creation. Performance counters
(jobs attended, rating average) move only through record_job_attended()
and record_rating(), never through update.
"""

import logging
from uuid import UUID

from core.lifecycle import rolling_average
from core.models import Agent, AgentCreate, Availability, AGENT_PERMISSIONS
from core.services.base import OwnedRecordService
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class AgentService(OwnedRecordService[Agent]):
    """Service for agent operations."""

    collection = "agents"
    entity_type = "agent"
    model = Agent
    permissions = AGENT_PERMISSIONS

    def create(self, data: AgentCreate) -> Agent:
        """
        Register an agent.

        Raises:
            ConflictError: If employee_id or email is already registered
        """
        agent = self._new_record(data.model_dump())
        self._insert(agent)
        logger.info(f"Agent created: {agent.employee_id}")
        return agent

    def list_agents(
        self,
        status: str | None = None,
        availability: str | None = None,
    ) -> list[Agent]:
        """List agents, optionally filtered by status and availability."""
        return self.list_all({"status": status, "availability": availability})

    def list_available(self) -> list[Agent]:
        """Active agents who can take a job now."""
        return self.list_all({"status": "active", "availability": Availability.AVAILABLE.value})

    def update_availability(self, agent_id: UUID, availability: Availability) -> Agent:
        """Set the agent's availability."""
        return self.update(agent_id, {"availability": Availability(availability).value})

    def update_location(self, agent_id: UUID, latitude: float, longitude: float) -> Agent:
        """
        Record the agent's current position.

        Raises:
            InvalidInputError: If coordinates are out of range
        """
        location = {"latitude": latitude, "longitude": longitude, "updated_at": now_utc()}
        return self.update(agent_id, {"location": location})

    def record_rating(self, agent_id: UUID, rating: int) -> Agent:
        """
        Fold a job rating into the agent's running average.

        new_average = (average * count + rating) / (count + 1)
        """
        current = self.get_by_id(agent_id)
        updated = current.model_copy(deep=True)
        updated.average_rating, updated.ratings_count = rolling_average(
            current.average_rating, current.ratings_count, rating
        )
        saved = self._save(current, updated)
        logger.info(
            f"Agent {saved.employee_id} rated {rating}: "
            f"average {saved.average_rating:.2f} over {saved.ratings_count}"
        )
        return saved

    def record_job_attended(self, agent_id: UUID) -> Agent:
        """Increment the agent's completed-jobs counter."""
        current = self.get_by_id(agent_id)
        updated = current.model_copy(deep=True)
        updated.total_jobs_attended += 1
        return self._save(current, updated)

