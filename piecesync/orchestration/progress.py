# piecesync/orchestration/progress.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from piecesync.db.enums import ProgressStatus


@dataclass
class ProgressEvent:
    ts: str
    stage: str
    status: ProgressStatus
    payload: Dict[str, Any] = field(default_factory=dict)


class ProgressRecorder:
    '''
    粗粒度进度记录：每个长操作只记录 begun / succeeded / failed
    '''
    def __init__(self):
        self.events: List[ProgressEvent] = []

    def emit(self, stage: str, status: ProgressStatus, **payload):
        '''
        Record a progress event.
        param:
        stage: str - The operation being reported, e.g. "parse_batch".
        status: ProgressStatus - begun / succeeded / failed.
        payload: Dict[str, Any] - Additional data for the event.
        '''
        self.events.append(
            ProgressEvent(ts=datetime.now().isoformat(), stage=stage, status=status, payload=payload)
        )

    def last(self, stage: str) -> Optional[ProgressEvent]:
        for e in reversed(self.events):
            if e.stage == stage:
                return e
        return None

    def dump(self) -> List[str]:
        '''
        Render all recorded events, one line each.
        '''
        return [f"[{e.ts}] {e.stage}: {e.status.value} {e.payload}" for e in self.events]
