"""Video job lifecycle transition rules."""

from app.errors import ApiError
from app.schemas.video_job import VideoJobStatus

TERMINAL_STATES: frozenset[VideoJobStatus] = frozenset(
    {
        VideoJobStatus.COMPLETED,
        VideoJobStatus.FAILED,
    }
)

ACTIVE_STATES: frozenset[VideoJobStatus] = frozenset(
    {
        VideoJobStatus.PENDING,
        VideoJobStatus.PROCESSING,
    }
)

# Pending may jump straight to a terminal state when the first provider status we observe is terminal.
_ALLOWED_TRANSITIONS: dict[VideoJobStatus, set[VideoJobStatus]] = {
    VideoJobStatus.PENDING: {VideoJobStatus.PROCESSING, VideoJobStatus.COMPLETED, VideoJobStatus.FAILED},
    VideoJobStatus.PROCESSING: {VideoJobStatus.COMPLETED, VideoJobStatus.FAILED},
    VideoJobStatus.COMPLETED: set(),
    VideoJobStatus.FAILED: set(),
}

# Rows may only be born pending (accepted upstream) or failed (audit of a rejected dispatch).
INITIAL_STATES: frozenset[VideoJobStatus] = frozenset({VideoJobStatus.PENDING, VideoJobStatus.FAILED})


def is_terminal(status: VideoJobStatus) -> bool:
    return status in TERMINAL_STATES


def allowed_next_statuses(status: VideoJobStatus) -> list[VideoJobStatus]:
    """Return deterministically ordered allowed successors for a status."""
    return sorted(_ALLOWED_TRANSITIONS.get(status, set()), key=lambda s: s.value)


def can_transition(old_status: VideoJobStatus, new_status: VideoJobStatus) -> bool:
    return new_status in _ALLOWED_TRANSITIONS.get(old_status, set())


def ensure_transition(old_status: VideoJobStatus, new_status: VideoJobStatus) -> None:
    """Validate transition according to lifecycle rules."""
    if old_status in TERMINAL_STATES:
        raise ApiError(
            status_code=409,
            code="FSM_TERMINAL_IMMUTABLE",
            message="Terminal state cannot be mutated",
            details={
                "current_status": old_status,
                "attempted_status": new_status,
                "allowed_next_statuses": [],
            },
        )

    if not can_transition(old_status, new_status):
        raise ApiError(
            status_code=409,
            code="FSM_TRANSITION_INVALID",
            message="Invalid status transition",
            details={
                "current_status": old_status,
                "attempted_status": new_status,
                "allowed_next_statuses": allowed_next_statuses(old_status),
            },
        )
