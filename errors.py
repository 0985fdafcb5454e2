"""Error types shared by the storyboard pipeline, the chat sessions and the API.

Every error carries a human-readable message; that message is what reaches the
user, never the underlying SDK exception.
"""

from typing import Optional


class StoryboardAppError(Exception):
    """Base class for all application errors."""
    default_message = "An unknown error occurred."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return self.args[0]


class MissingAPIKeyError(StoryboardAppError):
    default_message = "GOOGLE_API_KEY environment variable is not set."


class EmptyScriptError(StoryboardAppError):
    default_message = "Script cannot be empty."


class ScriptParseError(StoryboardAppError):
    """The script could not be turned into scenes. Fatal for the whole run."""
    default_message = "Failed to parse the script. Please check the script format and try again."


class ImageGenerationError(StoryboardAppError):
    """A single scene's image failed. Recorded on that scene only."""
    default_message = "Failed to generate the storyboard image."


class RateLimitError(ImageGenerationError):
    default_message = "Rate limit exceeded. Your free quota might be exhausted. Please check your plan and billing details."


class ChatError(StoryboardAppError):
    default_message = "Failed to get a response from the chatbot."
