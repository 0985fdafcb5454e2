import base64
import json
import logging
from typing import List, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

import config
from errors import ChatError, ImageGenerationError, RateLimitError, ScriptParseError
from models import SceneDescription

logger = logging.getLogger(__name__)

SCRIPT_PARSE_PROMPT = """Parse the following film script. Identify each distinct scene or shot and provide a concise visual description for a storyboard panel. Return the result as a JSON array of objects, where each object has a 'description' key containing the visual prompt. Script:

{script}"""

IMAGE_PROMPT_TEMPLATE = "A cinematic, high-quality storyboard panel illustration of: {prompt}. Minimalist, clear action, dramatic lighting."

SCENE_LIST_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    items=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "description": types.Schema(
                type=types.Type.STRING,
                description="A concise visual description for a storyboard panel for this scene.",
            ),
        },
        required=["description"],
    ),
)


def is_rate_limit_error(error: Exception) -> bool:
    """True when a failure looks like quota exhaustion (HTTP 429 / RESOURCE_EXHAUSTED)."""
    if isinstance(error, genai_errors.APIError):
        if error.code == 429 or error.status == "RESOURCE_EXHAUSTED":
            return True
    error_content = str(error)
    return "429" in error_content or "RESOURCE_EXHAUSTED" in error_content


def parse_scene_list(json_string: str) -> List[SceneDescription]:
    """Validates the parser model's JSON output: an array of objects with a string 'description'."""
    parsed_scenes = json.loads(json_string)
    if not isinstance(parsed_scenes, list) or not all(
        isinstance(s, dict) and isinstance(s.get("description"), str) for s in parsed_scenes
    ):
        raise ValueError("Invalid JSON structure received from API.")
    return [SceneDescription(description=s["description"]) for s in parsed_scenes]


class GeminiService:
    """Thin wrapper over the Google GenAI client for the three operations the app needs.

    Every failure is converted to an error from errors.py at this boundary.
    """

    def __init__(self, client: Optional[genai.Client] = None, api_key: Optional[str] = None):
        if client is None:
            client = genai.Client(api_key=api_key or config.require_api_key())
        self.client = client

    def parse_script(self, script: str) -> List[SceneDescription]:
        """Splits a script into ordered scene descriptions. Raises ScriptParseError."""
        try:
            logger.info(f"Parsing script with {config.SCRIPT_PARSER_MODEL} ({len(script)} chars)")
            response = self.client.models.generate_content(
                model=config.SCRIPT_PARSER_MODEL,
                contents=SCRIPT_PARSE_PROMPT.format(script=script),
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=SCENE_LIST_SCHEMA,
                ),
            )
            scenes = parse_scene_list(response.text)
        except Exception:
            logger.exception("Error parsing script:")
            raise ScriptParseError()

        logger.info(f"Script parsed into {len(scenes)} scenes.")
        return scenes

    def generate_image(self, prompt: str) -> str:
        """Generates one storyboard panel and returns it as a data URL.

        Raises RateLimitError on quota exhaustion, ImageGenerationError otherwise.
        """
        full_prompt = IMAGE_PROMPT_TEMPLATE.format(prompt=prompt)
        try:
            logger.info(f"Generating image with {config.IMAGE_MODEL}: '{prompt[:50]}...'")
            response = self.client.models.generate_images(
                model=config.IMAGE_MODEL,
                prompt=full_prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    output_mime_type=config.IMAGE_MIME_TYPE,
                    aspect_ratio=config.IMAGE_ASPECT_RATIO,
                ),
            )
            if not response.generated_images:
                raise ValueError("No image was generated.")
            image_bytes = response.generated_images[0].image.image_bytes
            if not image_bytes:
                raise ValueError("No image data in response.")
        except Exception as e:
            logger.error(f"Error generating image: {e}")
            if is_rate_limit_error(e):
                raise RateLimitError()
            raise ImageGenerationError()

        base64_image = base64.b64encode(image_bytes).decode("utf-8")
        return f"data:{config.IMAGE_MIME_TYPE};base64,{base64_image}"

    def create_chat(self, system_instruction: str = config.CHAT_SYSTEM_INSTRUCTION):
        """Opens a server-side chat session. The returned handle keeps the turn history."""
        return self.client.chats.create(
            model=config.CHAT_MODEL,
            config=types.GenerateContentConfig(system_instruction=system_instruction),
        )

    def send_message(self, chat, message: str) -> str:
        """Sends one user turn on an existing chat handle. Raises ChatError."""
        try:
            response = chat.send_message(message)
        except Exception:
            logger.exception("Error sending chat message:")
            raise ChatError()
        if not response.text:
            logger.error("Chat model returned an empty reply.")
            raise ChatError()
        return response.text


# Process-wide client, created on first use and shared by every request
_service: Optional[GeminiService] = None

def get_service() -> GeminiService:
    global _service
    if _service is None:
        _service = GeminiService()
    return _service
