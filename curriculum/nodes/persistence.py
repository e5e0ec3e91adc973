"""Terminal stage: persist whatever the run produced."""

from datetime import datetime, timezone
from typing import Any, Dict

import structlog

from curriculum.errors import PersistenceError
from curriculum.nodes.context import NodeContext
from curriculum.schemas.generation_state import GenerationState

logger = structlog.get_logger(__name__)


async def save_curriculum(state: GenerationState, ctx: NodeContext) -> Dict[str, Any]:
    """
    Save the run. Without job data there is nothing worth saving and the run
    is marked aborted; a failed save is reported in errors, never raised.
    """
    finished_at = datetime.now(timezone.utc)

    if state.job_data is None:
        logger.error("Run aborted before the job was parsed", errors=state.errors, request_id=state.request_id)
        return {"aborted": True, "finished_at": finished_at}

    try:
        curriculum_id = await ctx.repository.save(state)
    except PersistenceError as e:
        logger.error("save_curriculum failed", error=e.reason, request_id=state.request_id)
        return {"errors": [f"Failed to save curriculum: {e.reason}"], "finished_at": finished_at}

    logger.info("save_curriculum completed", curriculum_id=curriculum_id, request_id=state.request_id)
    return {"curriculum_id": curriculum_id, "finished_at": finished_at}
