# src/lumi_router/models.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field

USER = "user"
ASSISTANT = "assistant"


class ConversationMessage(BaseModel):
    role: str
    content: str = ""
    timestamp: Optional[int] = None  # epoch ms, display/ordering only


class ChatRequest(BaseModel):
    message: Optional[str] = None
    model: Optional[str] = None
    agent: Optional[str] = None
    history: List[ConversationMessage] = Field(default_factory=list)

    @property
    def preferred(self) -> Optional[str]:
        return self.model or self.agent


class ChatResponse(BaseModel):
    content: str
    model: str  # provider that actually answered


class ErrorResponse(BaseModel):
    error: str


@dataclass(frozen=True)
class ProviderRequest:
    """
    One attempt's payload, already in the provider's shape.

    `input` is only set for turn-based providers (the new turn's text);
    chat-completion providers carry everything in `messages`.
    """
    provider_id: str
    system_prompt: str
    messages: Tuple[Dict[str, Any], ...]
    input: Optional[str] = None


@dataclass(frozen=True)
class ProviderResponse:
    content: str
    provider_id: str


# --- Chat history (store) schemas --------------------------------------------

class Chat(BaseModel):
    id: str
    title: str
    createdAt: int
    updatedAt: int
    messageCount: int = 0


class NewChatRequest(BaseModel):
    title: str = "New Chat"


class RenameChatRequest(BaseModel):
    title: str


class StoredMessage(BaseModel):
    id: Optional[int] = None
    role: str
    content: str
    timestamp: Optional[int] = None


class ProviderStatus(BaseModel):
    id: str
    model: str
    style: str
    configured: bool
    default: bool = False
