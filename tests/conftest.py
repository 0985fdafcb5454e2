"""
Shared fixtures: a scripted stand-in for the Gemini model service.
"""

import threading
import time

import pytest

from models import SceneDescription


class FakeChat:
    """Chat handle returned by FakeGeminiService.create_chat."""

    def __init__(self, system_instruction):
        self.system_instruction = system_instruction
        self.sent = []


class FakeGeminiService:
    """Same interface as gemini_client.GeminiService, driven by canned results.

    image_results maps a scene description to either a data URL or an exception to raise.
    chat_replies is consumed in order; an exception entry is raised instead of returned.
    image_delay / reply_delay slow calls down so overlapping requests show up in max_in_flight.
    """

    def __init__(self, descriptions=None, image_results=None, parse_error=None, chat_replies=None,
                 image_delay=0, reply_delay=0):
        self.descriptions = list(descriptions or [])
        self.image_results = dict(image_results or {})
        self.parse_error = parse_error
        self.chat_replies = list(chat_replies or [])
        self.image_delay = image_delay
        self.reply_delay = reply_delay
        self.calls = []
        self.chats = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._counter_lock = threading.Lock()

    def _enter(self):
        with self._counter_lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)

    def _leave(self):
        with self._counter_lock:
            self.in_flight -= 1

    def parse_script(self, script):
        self.calls.append(("parse_script", script))
        if self.parse_error is not None:
            raise self.parse_error
        return [SceneDescription(description=d) for d in self.descriptions]

    def generate_image(self, prompt):
        self._enter()
        try:
            self.calls.append(("generate_image", prompt))
            time.sleep(self.image_delay)
            result = self.image_results.get(prompt, f"data:image/jpeg;base64,{prompt}")
        finally:
            self._leave()
        if isinstance(result, Exception):
            raise result
        return result

    def create_chat(self, system_instruction):
        chat = FakeChat(system_instruction)
        self.chats.append(chat)
        return chat

    def send_message(self, chat, message):
        self._enter()
        try:
            self.calls.append(("send_message", message))
            chat.sent.append(message)
            time.sleep(self.reply_delay)
            reply = self.chat_replies.pop(0) if self.chat_replies else f"Reply to: {message}"
        finally:
            self._leave()
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def image_prompts(self):
        return [args for name, args in self.calls if name == "generate_image"]


@pytest.fixture
def fake_service():
    return FakeGeminiService(descriptions=["A man stands in a room.", "The door opens.", "A woman enters."])


@pytest.fixture
def no_pacing(monkeypatch):
    """Removes the delay between image requests."""
    import config
    monkeypatch.setattr(config, "SCENE_PACING_SECONDS", 0)
