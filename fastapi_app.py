from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, BackgroundTasks, Depends
import logging
# Configure logging for FastAPI and its modules
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__) # Logger for this module

# --- Project Imports ---
import config
from errors import ChatError, EmptyScriptError
from gemini_client import GeminiService, get_service
from agents.storyboard_agent import StoryboardRun, StoryboardRunRegistry
from agents.chat_agent import ChatSession, ChatSessionManager
from models import (
    StoryboardState, GenerateStoryboardRequest,
    ChatSessionState, SendMessageRequest, SuccessResponse,
)

# --- API Key Check (Startup) ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    # No key, no app: refuse to start rather than fail on every request
    config.require_api_key()
    logger.info("Storyboard Studio API started.")
    yield


# --- FastAPI App Setup ---
app = FastAPI(
    title="Storyboard Studio API",
    description="Script-to-storyboard generation and a filmmaking chat assistant, backed by Google Gemini.",
    version="0.1.0",
    lifespan=lifespan,
)

# --- Shared state ---
# Runs and sessions live in memory only; nothing is persisted
storyboard_runs = StoryboardRunRegistry()
chat_sessions = ChatSessionManager()


# --- Dependencies ---
def get_gemini_service() -> GeminiService:
    return get_service()


def get_run_or_404(run_id: str) -> StoryboardRun:
    run = storyboard_runs.get(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Storyboard run '{run_id}' not found.")
    return run


def get_session_or_404(session_id: str) -> ChatSession:
    session = chat_sessions.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Chat session '{session_id}' not found.")
    return session


def execute_storyboard_run(run: StoryboardRun, script: str) -> None:
    """Background task: runs the pipeline to the end."""
    try:
        final_state = run.execute(script)
        logger.info(f"Storyboard run {run.run_id} finished with status '{final_state.status}'.")
    except Exception:
        logger.exception(f"Storyboard run {run.run_id} crashed:")
        state = run.state
        state.status = "failed"
        state.error = state.error or "An unknown error occurred."
        for scene in state.scenes:
            scene.is_loading = False
        run.publish(state)


# --- Endpoints ---

@app.get("/", summary="Root endpoint", tags=["General"])
async def read_root():
    return {"message": "Storyboard Studio API"}

# --- Storyboard Endpoints ---
@app.post("/storyboards", response_model=StoryboardState, status_code=202, summary="Start a storyboard run", tags=["Storyboard"])
def start_storyboard(request: GenerateStoryboardRequest, background_tasks: BackgroundTasks,
                     service: GeminiService = Depends(get_gemini_service)):
    """Parses the script into scenes and generates their images in the background."""
    try:
        run = storyboard_runs.create(service, request.script)
    except EmptyScriptError as e:
        raise HTTPException(status_code=400, detail=e.message)

    background_tasks.add_task(execute_storyboard_run, run, request.script)
    return run.state

@app.get("/storyboards/{run_id}", response_model=StoryboardState, summary="Get storyboard run progress", tags=["Storyboard"])
def get_storyboard(run: StoryboardRun = Depends(get_run_or_404)):
    """Returns the latest snapshot of a storyboard run."""
    return run.state

@app.delete("/storyboards/{run_id}", response_model=SuccessResponse, summary="Cancel a storyboard run", tags=["Storyboard"])
def cancel_storyboard(run: StoryboardRun = Depends(get_run_or_404)):
    """Stops a run before its next scene and forgets it."""
    storyboard_runs.cancel(run.run_id)
    return {"message": f"Storyboard run '{run.run_id}' cancelled."}


# --- Chat Endpoints ---
@app.post("/chat/sessions", response_model=ChatSessionState, status_code=201, summary="Start a chat session", tags=["Chat"])
def create_chat_session(service: GeminiService = Depends(get_gemini_service)):
    """Opens a new conversation, seeded with the assistant's greeting."""
    session = chat_sessions.create_session(service)
    return session.to_state()

@app.get("/chat/sessions/{session_id}", response_model=ChatSessionState, summary="Get a chat session", tags=["Chat"])
def get_chat_session(session: ChatSession = Depends(get_session_or_404)):
    return session.to_state()

@app.delete("/chat/sessions/{session_id}", response_model=SuccessResponse, summary="Close a chat session", tags=["Chat"])
def delete_chat_session(session: ChatSession = Depends(get_session_or_404)):
    chat_sessions.delete_session(session.session_id)
    return {"message": f"Chat session '{session.session_id}' closed."}

@app.post("/chat/sessions/{session_id}/messages", response_model=ChatSessionState, summary="Send a chat message", tags=["Chat"])
def send_chat_message(request: SendMessageRequest, session: ChatSession = Depends(get_session_or_404)):
    """Sends one user turn. Empty messages are ignored."""
    try:
        session.send_turn(request.message)
    except ChatError as e:
        # The user turn stays in the session log; the error is only reported
        raise HTTPException(status_code=502, detail=e.message)
    return session.to_state()


# Run from your terminal in the project directory:
# uvicorn fastapi_app:app --reload
