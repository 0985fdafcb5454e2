import os
from dotenv import load_dotenv

from errors import MissingAPIKeyError

load_dotenv() # Load environment variables from a .env file

GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY") or os.getenv("API_KEY")

SCRIPT_PARSER_MODEL = os.getenv("SCRIPT_PARSER_MODEL", "gemini-2.5-flash")
IMAGE_MODEL = os.getenv("IMAGE_MODEL", "imagen-4.0-generate-001")
CHAT_MODEL = os.getenv("CHAT_MODEL", "gemini-2.5-flash")

IMAGE_ASPECT_RATIO = "16:9"
IMAGE_MIME_TYPE = "image/jpeg"

# Fixed delay between consecutive image requests, to stay under the image model's rate limit
SCENE_PACING_SECONDS = float(os.getenv("SCENE_PACING_SECONDS", "5"))

CHAT_SYSTEM_INSTRUCTION = "You are a helpful assistant with expertise in filmmaking and scriptwriting. Answer questions concisely and clearly."
CHAT_GREETING = "Hello! How can I help you with your script or filmmaking questions today?"

# Backend URL used by the Streamlit front-end
API_BASE_URL = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")


def require_api_key() -> str:
    """Returns the Google API key or raises if it is not configured."""
    if not GOOGLE_API_KEY:
        raise MissingAPIKeyError("GOOGLE_API_KEY (or API_KEY) environment variable is not set.")
    return GOOGLE_API_KEY
