from pydantic import BaseModel, Field
from typing import Optional, List, Literal

# Pydantic models for the storyboard state

class SceneDescription(BaseModel):
    """One item of the script parser's JSON output."""
    description: str = Field(..., description="A concise visual description for a storyboard panel for this scene.")

class Scene(BaseModel):
    id: int = Field(..., description="Zero-based position in the parsed scene order")
    description: str
    image: Optional[str] = None # data:image/jpeg;base64,... URL
    is_loading: bool = False
    error: Optional[str] = None

RunStatus = Literal["parsing", "generating", "completed", "failed", "cancelled"]

class StoryboardState(BaseModel):
    run_id: Optional[str] = None
    status: RunStatus = "parsing"
    scenes: List[Scene] = []
    error: Optional[str] = None # Top-level failure (empty script or parse error)

# Chat models

class ChatMessage(BaseModel):
    role: Literal["user", "model"]
    content: str

class ChatSessionState(BaseModel):
    session_id: str
    messages: List[ChatMessage] = []
    error: Optional[str] = None # Transient, not part of the conversation log

# API Request Models

class GenerateStoryboardRequest(BaseModel):
    script: str = Field(..., description="Free-text film script")

class SendMessageRequest(BaseModel):
    message: str = Field(..., description="User chat turn")

# Response Models
class SuccessResponse(BaseModel):
    message: str
