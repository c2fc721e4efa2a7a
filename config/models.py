from pydantic import BaseModel, Field
from typing import Dict, Any

class ProviderConfig(BaseModel):
    provider: str = "echo"
    chunk_delay_ms: int = Field(40, ge=0, description="Delay between streamed chunks for local providers")
    parameters: Dict[str, Any] = Field(default_factory=dict)

class ContextConfig(BaseModel):
    include_files: bool = Field(True, description="Read selected files into the context")
    include_git_context: bool = Field(True, description="Collect branch, log and diff")
    include_recent_changes: bool = Field(True, description="Attach the recent file change list")
    include_workspace: bool = Field(True, description="Detect the project structure")
    max_file_size: int = Field(100 * 1024, gt=0, description="Maximum characters kept per file")
    max_files: int = Field(10, ge=0, description="Maximum number of selected files")
    max_changes: int = Field(50, ge=0, description="Maximum number of recent changes")
    file_cache_size: int = Field(50, gt=0, description="Capacity of the shared file cache")
    git_log_count: int = Field(10, gt=0, description="Number of commits in the git log summary")

class StreamingConfig(BaseModel):
    max_buffer_size: int = Field(1024 * 1024, gt=0, description="Chunk processor buffer limit before an early flush")
    chunk_timeout_ms: int = Field(30000, gt=0, description="Idle time after which a session expires")
    debounce_ms: int = Field(50, ge=0, description="Debounce window for coalescing chunks")
    history_size: int = Field(256, ge=0, description="Finished sessions remembered for lookups")

class Config(BaseModel):
    model: ProviderConfig = Field(default_factory=ProviderConfig, description="Response provider settings")
    context: ContextConfig = Field(default_factory=ContextConfig, description="Workspace context settings")
    streaming: StreamingConfig = Field(default_factory=StreamingConfig, description="Streaming session settings")
