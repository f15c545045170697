"""
Clone progress domain objects for repokeeper.

ProgressEvent is what the stream decoder produces for one line of git's
progress output. CloneProgress and CloneComplete are the notifications
pushed to the event sink while a clone runs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any

CLONE_PROGRESS = "clone-progress"
CLONE_COMPLETE = "clone-complete"


class CloneStage(Enum):
    """Phases of a clone, in the order git normally reports them."""
    COUNTING = "counting"
    COMPRESSING = "compressing"
    RECEIVING = "receiving"
    RESOLVING = "resolving"

    @property
    def message(self) -> str:
        return STAGE_MESSAGES[self]


STAGE_MESSAGES = {
    CloneStage.COUNTING: "Counting objects...",
    CloneStage.COMPRESSING: "Compressing objects...",
    CloneStage.RECEIVING: "Receiving objects...",
    CloneStage.RESOLVING: "Resolving deltas...",
}


@dataclass(frozen=True)
class ProgressEvent:
    """One decoded progress line."""
    stage: CloneStage
    percent: int
    received_objects: Optional[int] = None
    total_objects: Optional[int] = None
    received_bytes: Optional[int] = None
    speed: Optional[str] = None


@dataclass(frozen=True)
class CloneProgress:
    """Progress notification for one repository's clone."""
    repo_name: str
    percent: int
    message: str
    received_bytes: Optional[int] = None
    total_objects: Optional[int] = None
    received_objects: Optional[int] = None
    speed: Optional[str] = None

    @classmethod
    def from_event(cls, repo_name: str, event: ProgressEvent) -> 'CloneProgress':
        return cls(
            repo_name=repo_name,
            percent=event.percent,
            message=event.stage.message,
            received_bytes=event.received_bytes,
            total_objects=event.total_objects,
            received_objects=event.received_objects,
            speed=event.speed,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'repoName': self.repo_name,
            'percent': self.percent,
            'stageMessage': self.message,
            'receivedBytes': self.received_bytes,
            'totalObjects': self.total_objects,
            'receivedObjects': self.received_objects,
            'speed': self.speed,
        }
        return {k: v for k, v in result.items() if v is not None}


@dataclass(frozen=True)
class CloneComplete:
    """Emitted exactly once per clone attempt."""
    repo_name: str
    success: bool
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            'repoName': self.repo_name,
            'success': self.success,
        }
        if self.error_message:
            result['errorMessage'] = self.error_message
        return result
