from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from deskagent.domain.models.agent_state import PersistedMessage, PriorTurn


class ChatRespondRequest(BaseModel):
    """Body of a direct chat turn"""
    message: str = Field(min_length=1)
    user_id: str = Field(min_length=1, description="User the persona acts on behalf of")
    company_id: str = Field(min_length=1)
    persona_id: Optional[str] = None
    personality_level: Optional[int] = None
    company_name: Optional[str] = None
    enabled_capabilities: Optional[List[str]] = None
    conversation_history: List[PriorTurn] = Field(default_factory=list)


class ActionRespondRequest(BaseModel):
    """Body of an autonomous action event"""
    user_id: str = Field(min_length=1)
    company_id: str = "default"
    action_id: str = Field(min_length=1)
    action_prompt: str = Field(min_length=1)
    persona_id: str = Field(min_length=1)
    personality_level: Optional[int] = None
    company_name: Optional[str] = None
    trigger_data: Dict[str, Any] = Field(default_factory=dict)
    conversation_history: List[PriorTurn] = Field(default_factory=list)


class MessageListResponse(BaseModel):
    messages: List[PersistedMessage]
    page: int
    limit: int
    total: int
    has_more: bool


class SessionResponse(BaseModel):
    session_id: str
    websocket_url: str
    expires_at: float
