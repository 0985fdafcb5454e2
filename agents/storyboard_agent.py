import logging
import threading
import uuid
from typing import Callable, Dict, Iterator, Optional

import config
from errors import EmptyScriptError, ImageGenerationError, ScriptParseError
from models import Scene, StoryboardState

logger = logging.getLogger(__name__)

# Image requests share one API key and its rate limit: at most one in flight per process
IMAGE_REQUEST_LOCK = threading.Lock()


class StoryboardPipeline:
    """Turns a script into storyboard scenes, then generates their images one at a time.

    run() yields a snapshot of the whole storyboard after every state change, so a
    caller can render progress as it happens. Image requests are strictly sequential
    with a fixed pause between them; a failed image only marks its own scene.
    """

    def __init__(self, service, pacing_seconds: Optional[float] = None,
                 sleep: Optional[Callable[[float], None]] = None, run_id: Optional[str] = None,
                 image_lock: Optional[threading.Lock] = None):
        self.service = service
        self.pacing_seconds = config.SCENE_PACING_SECONDS if pacing_seconds is None else pacing_seconds
        self.run_id = run_id
        self._cancelled = threading.Event()
        self._sleep = sleep or self._cancelled.wait # Waiting on the event lets cancel() cut a pause short
        self._image_lock = image_lock or IMAGE_REQUEST_LOCK

    def cancel(self) -> None:
        """Stops the run before the next scene. Scenes not yet attempted are left untouched."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(self, script: str) -> Iterator[StoryboardState]:
        """Validates the script and returns the snapshot iterator. Raises EmptyScriptError."""
        if not script or not script.strip():
            raise EmptyScriptError()
        return self._run(script)

    def _run(self, script: str) -> Iterator[StoryboardState]:
        state = StoryboardState(run_id=self.run_id, status="parsing")
        yield self._snapshot(state)

        try:
            parsed_scenes = self.service.parse_script(script)
        except ScriptParseError as e:
            # Nothing to show: no partial scene list, a single top-level error
            state.status = "failed"
            state.error = e.message
            yield self._snapshot(state)
            return

        state.scenes = [Scene(id=index, description=s.description) for index, s in enumerate(parsed_scenes)]
        state.status = "generating"
        yield self._snapshot(state)

        last_index = len(state.scenes) - 1
        for scene in state.scenes:
            if self.cancelled:
                logger.info(f"Storyboard run {self.run_id} cancelled before scene {scene.id}.")
                state.status = "cancelled"
                yield self._snapshot(state)
                return

            scene.is_loading = True
            yield self._snapshot(state)

            try:
                with self._image_lock:
                    scene.image = self.service.generate_image(scene.description)
            except ImageGenerationError as e:
                logger.warning(f"Scene {scene.id} failed: {e.message}")
                scene.error = e.message
            finally:
                scene.is_loading = False
            yield self._snapshot(state)

            if scene.id < last_index:
                self._sleep(self.pacing_seconds)

        state.status = "completed"
        logger.info(f"Storyboard run {self.run_id} completed with {len(state.scenes)} scenes.")
        yield self._snapshot(state)

    @staticmethod
    def _snapshot(state: StoryboardState) -> StoryboardState:
        return state.model_copy(deep=True)


class StoryboardRun:
    """Latest snapshot of one pipeline run. The pipeline is the only writer."""

    def __init__(self, run_id: str, pipeline: StoryboardPipeline):
        self.run_id = run_id
        self.pipeline = pipeline
        self._lock = threading.Lock()
        self._state = StoryboardState(run_id=run_id, status="parsing")

    @property
    def state(self) -> StoryboardState:
        with self._lock:
            return self._state.model_copy(deep=True)

    def publish(self, state: StoryboardState) -> None:
        with self._lock:
            self._state = state

    def execute(self, script: str) -> StoryboardState:
        """Drives the pipeline to the end, publishing every snapshot."""
        for snapshot in self.pipeline.run(script):
            self.publish(snapshot)
        return self.state

    def cancel(self) -> None:
        self.pipeline.cancel()


class StoryboardRunRegistry:
    """Keeps track of the current storyboard run so it can be polled and cancelled by id.

    A new run replaces the previous one: the old run is cancelled and dropped, so
    only one run generates images at a time and finished boards are not kept around.
    """

    def __init__(self):
        self._runs: Dict[str, StoryboardRun] = {}
        self._lock = threading.Lock()

    def create(self, service, script: str) -> StoryboardRun:
        """Registers a new run. Raises EmptyScriptError before anything is registered."""
        if not script or not script.strip():
            raise EmptyScriptError()
        run_id = uuid.uuid4().hex
        pipeline = StoryboardPipeline(service, run_id=run_id)
        run = StoryboardRun(run_id, pipeline)
        with self._lock:
            replaced = list(self._runs.values())
            self._runs = {run_id: run}
        for old_run in replaced:
            old_run.cancel()
            logger.info(f"Storyboard run {old_run.run_id} replaced by {run_id}.")
        logger.info(f"Storyboard run {run_id} created.")
        return run

    def get(self, run_id: str) -> Optional[StoryboardRun]:
        with self._lock:
            return self._runs.get(run_id)

    def cancel(self, run_id: str) -> bool:
        """Cancels a run and forgets it."""
        with self._lock:
            run = self._runs.pop(run_id, None)
        if run is None:
            return False
        run.cancel()
        logger.info(f"Storyboard run {run_id} cancelled.")
        return True
