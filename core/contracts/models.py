from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional


class FileContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    content: str
    language: str = "text"

class FileChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    type: Literal["added", "modified", "deleted"]
    timestamp: datetime
    diff: Optional[str] = None

class ProjectStructure(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    root_path: str

class WorkspaceInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    structure: Optional[ProjectStructure] = None

class AIContext(BaseModel):
    """Snapshot of workspace state attached to a conversation turn."""
    model_config = ConfigDict(frozen=True)

    files: Optional[List[FileContext]] = None
    git_branch: Optional[str] = None
    git_log: Optional[str] = None
    git_diff: Optional[str] = None
    recent_changes: Optional[List[FileChange]] = None
    workspace: Optional[WorkspaceInfo] = None

class ContextSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    conversation_id: str
    context: AIContext
    created_at: float
    files_cached: int = 0
    context_size: int = 0  # UTF-8 bytes of the context's textual payload

class ContextStats(BaseModel):
    active_sessions: int = 0
    cached_files: int = 0
    total_context_size: int = 0

class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class SessionState(str, Enum):
    CREATED = "created"
    ACTIVE = "active"
    ENDED = "ended"
    EXPIRED = "expired"

class StreamingSession(BaseModel):
    session_id: str
    conversation_id: str
    started_at: float
    total_chunks: int = 0
    total_bytes: int = 0
    state: SessionState = SessionState.CREATED

class LookupStatus(str, Enum):
    LIVE = "live"
    ENDED = "ended"
    EXPIRED = "expired"
    UNKNOWN = "unknown"

class SessionLookup(BaseModel):
    """Outcome of looking a streaming session up by id."""
    status: LookupStatus
    session: Optional[StreamingSession] = Field(default=None, description="Last known snapshot, if any")
