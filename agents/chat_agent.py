import logging
import threading
import uuid
from typing import Dict, Optional

import config
from errors import ChatError
from models import ChatMessage, ChatSessionState

logger = logging.getLogger(__name__)


class ChatSession:
    """One filmmaking-assistant conversation.

    The model service keeps the turn history behind the chat handle; the local
    log only mirrors it for display and always opens with a local greeting.
    Turns on one session are serialized, so the log always alternates user/model.
    """

    def __init__(self, service, session_id: Optional[str] = None):
        self.service = service
        self.session_id = session_id or uuid.uuid4().hex
        self.system_prompt = config.CHAT_SYSTEM_INSTRUCTION
        self.chat = None
        self.messages = []
        self.error: Optional[str] = None
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        """Starts over with a new server-side session and a fresh greeting."""
        with self._lock:
            self.chat = self.service.create_chat(self.system_prompt)
            self.messages = [ChatMessage(role="model", content=config.CHAT_GREETING)]
            self.error = None

    def send_turn(self, text: str) -> Optional[ChatMessage]:
        """Sends a user turn and appends the reply.

        Empty input is ignored and returns None. On failure the user turn stays
        in the log, no model turn is added, the message is kept in `error` until
        the next turn and ChatError is raised.
        """
        with self._lock:
            self.error = None
            if not text or not text.strip() or self.chat is None:
                return None

            self.messages.append(ChatMessage(role="user", content=text))
            try:
                reply = self.service.send_message(self.chat, text)
            except ChatError as e:
                logger.warning(f"Chat turn failed in session {self.session_id}: {e.message}")
                self.error = e.message
                raise

            model_message = ChatMessage(role="model", content=reply)
            self.messages.append(model_message)
            return model_message

    def to_state(self) -> ChatSessionState:
        with self._lock:
            return ChatSessionState(
                session_id=self.session_id,
                messages=[m.model_copy() for m in self.messages],
                error=self.error,
            )


class ChatSessionManager:
    """Holds the open chat sessions by id."""

    def __init__(self):
        self._sessions: Dict[str, ChatSession] = {}
        self._lock = threading.Lock()

    def create_session(self, service) -> ChatSession:
        session = ChatSession(service)
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info(f"Chat session {session.session_id} created.")
        return session

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def send_turn(self, session_id: str, text: str) -> Optional[ChatMessage]:
        session = self.get_session(session_id)
        if session is None:
            return None
        return session.send_turn(text)
