"""
Handler for ServiceCallCompleted events.

On first completion of a service call, credits the assigned agent with a
job attended and stamps the serviced equipment's last service date.
"""

import logging
from typing import Callable

from core.events import ServiceCallCompleted
from utils.user_context import user_context

logger = logging.getLogger(__name__)


def handle_service_call_completed(agent_service, equipment_service) -> Callable:
    """
    Factory that returns a ServiceCallCompleted handler.

    Dependencies are captured at wiring time via closure.

    Args:
        agent_service: AgentService instance
        equipment_service: EquipmentService instance

    Returns:
        Handler callable that updates agent and equipment records
    """

    def handler(event: ServiceCallCompleted):
        call = event.service_call

        # Records are owner-scoped; act as the call's owner
        with user_context(call.created_by):
            if call.assigned_agent is not None:
                if agent_service.find_by_id(call.assigned_agent) is None:
                    logger.warning(
                        f"Completed call {call.call_number} references missing agent "
                        f"{call.assigned_agent}"
                    )
                else:
                    agent_service.record_job_attended(call.assigned_agent)

            if call.equipment is not None:
                if equipment_service.find_by_id(call.equipment) is None:
                    logger.warning(
                        f"Completed call {call.call_number} references missing equipment "
                        f"{call.equipment}"
                    )
                else:
                    equipment_service.record_service_date(call.equipment, call.completed_date)

    return handler
