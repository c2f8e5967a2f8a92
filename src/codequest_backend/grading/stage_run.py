import dataclasses
import enum
import logging
import threading
import time
import typing

from codequest_backend.models.curriculum_models import CodingStageModel
from codequest_backend.models.grading_models import GradingVerdictModel
from codequest_backend.utils.base_types import ChapterIndex, CodingStageIndex, LessonIndex

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class StageRunState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    EVALUATING = "evaluating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StageRunBusyError(RuntimeError):
    """A grading request arrived while an attempt was running or being presented."""


class StageNotLoadedError(RuntimeError):
    pass


@dataclasses.dataclass(frozen=True)
class StageCompletedEvent:
    chapter_index: ChapterIndex
    lesson_index: LessonIndex
    coding_stage_index: CodingStageIndex


class GradingBackend(typing.Protocol):
    def grade(self, stage: CodingStageModel, learner_source: str) -> GradingVerdictModel: ...


class StageRunEventSink:
    """
    Receives stage run notifications (sounds, animations, UI state). Every hook is a no-op by default so
    the run never depends on a listener being present.
    """

    def on_state_change(self, previous: StageRunState, current: StageRunState) -> None:
        pass

    def on_success(self, verdict: GradingVerdictModel) -> None:
        pass

    def on_failure(self, verdict: GradingVerdictModel) -> None:
        pass

    def on_completion_error(self, event: StageCompletedEvent, error: Exception) -> None:
        pass


@dataclasses.dataclass(frozen=True)
class _LoadedStage:
    event: StageCompletedEvent
    stage: CodingStageModel


class StageRun:
    """
    Lifecycle of grading attempts for the coding stage currently on screen.

      IDLE -> RUNNING -> EVALUATING -> SUCCEEDED
                      -> FAILED

    Entering EVALUATING emits the completion event once per RUNNING episode. EVALUATING lasts
    `success_presentation_seconds` (0 commits straight to SUCCEEDED) and only `reset()` can cancel it.
    Requests made while RUNNING or EVALUATING are rejected. `reset()` and `load_stage()` start a new episode,
    so a verdict that arrives for an abandoned attempt is dropped.
    """

    def __init__(
        self,
        grader: GradingBackend,
        on_completion: typing.Optional[typing.Callable[[StageCompletedEvent], typing.Any]] = None,
        event_sink: typing.Optional[StageRunEventSink] = None,
        success_presentation_seconds: float = 0.0,
        clock: typing.Callable[[], float] = time.monotonic,
    ) -> None:
        self._grader = grader
        self._on_completion = on_completion
        self._sink = event_sink or StageRunEventSink()
        self._presentation_seconds = success_presentation_seconds
        self._clock = clock
        self._lock = threading.RLock()

        self._loaded: typing.Optional[_LoadedStage] = None
        self._state = StageRunState.IDLE
        self._episode = 0
        self._verdict: typing.Optional[GradingVerdictModel] = None
        self._evaluating_since: typing.Optional[float] = None
        self._completion_fired = False
        self._completion_error: typing.Optional[Exception] = None

    @property
    def state(self) -> StageRunState:
        return self._state

    @property
    def verdict(self) -> typing.Optional[GradingVerdictModel]:
        return self._verdict

    @property
    def completion_error(self) -> typing.Optional[Exception]:
        return self._completion_error

    @property
    def is_busy(self) -> bool:
        return self._state in (StageRunState.RUNNING, StageRunState.EVALUATING)

    @property
    def loaded_event(self) -> typing.Optional[StageCompletedEvent]:
        return self._loaded.event if self._loaded else None

    def load_stage(
        self,
        chapter_index: ChapterIndex,
        lesson_index: LessonIndex,
        coding_stage_index: CodingStageIndex,
        stage: CodingStageModel,
    ) -> None:
        """Binds the run to another stage. Counts as navigating away: any attempt in flight is abandoned."""
        with self._lock:
            self._loaded = _LoadedStage(
                event=StageCompletedEvent(chapter_index, lesson_index, coding_stage_index),
                stage=stage,
            )
            self.reset()

    def unload_stage(self) -> None:
        with self._lock:
            self._loaded = None
            self.reset()

    def reset(self) -> None:
        with self._lock:
            self._episode += 1
            self._verdict = None
            self._evaluating_since = None
            self._completion_fired = False
            self._completion_error = None
            self._transition(StageRunState.IDLE)

    def grade(self, learner_source: str) -> typing.Optional[GradingVerdictModel]:
        """
        Runs one grading attempt for the loaded stage.

        :returns: The verdict, or None if the attempt was abandoned (reset or navigation) before it finished.
        :raises StageRunBusyError: If an attempt is already RUNNING or EVALUATING.
        :raises StageNotLoadedError: If no stage is loaded.
        """
        with self._lock:
            if self.is_busy:
                _LOGGER.warning(f"Rejecting grading request while {self._state.value}.")
                raise StageRunBusyError(f"Cannot grade while {self._state.value}")
            if self._loaded is None:
                raise StageNotLoadedError("No coding stage is loaded")
            if self._state is not StageRunState.IDLE:
                self.reset()
            self._episode += 1
            episode = self._episode
            loaded = self._loaded
            self._transition(StageRunState.RUNNING)

        try:
            verdict = self._grader.grade(loaded.stage, learner_source)
        except Exception:
            with self._lock:
                if episode == self._episode:
                    self._transition(StageRunState.IDLE)
            raise

        with self._lock:
            if episode != self._episode or self._state is not StageRunState.RUNNING:
                _LOGGER.info(f"Discarding verdict of abandoned attempt for {loaded.event}.")
                return None
            self._verdict = verdict
            if verdict.all_passed:
                self._evaluating_since = self._clock()
                self._transition(StageRunState.EVALUATING)
            else:
                self._transition(StageRunState.FAILED)

        if verdict.all_passed:
            self._fire_completion(episode)
            self._sink.on_success(verdict)
            self.poll()
        else:
            self._sink.on_failure(verdict)
        return verdict

    def poll(self) -> StageRunState:
        """Commits EVALUATING to SUCCEEDED once the presentation interval has elapsed."""
        with self._lock:
            if self._state is StageRunState.EVALUATING and self._evaluating_since is not None:
                if self._clock() - self._evaluating_since >= self._presentation_seconds:
                    self._transition(StageRunState.SUCCEEDED)
            return self._state

    def retry_completion(self) -> bool:
        """
        Re-emits the completion event after the previous emission failed.
        :returns: True if the completion callback succeeded this time.
        """
        with self._lock:
            if self._completion_error is None or self._state not in (
                StageRunState.EVALUATING,
                StageRunState.SUCCEEDED,
            ):
                return False
            self._completion_error = None
            self._completion_fired = False
            episode = self._episode
        return self._fire_completion(episode)

    def _fire_completion(self, episode: int) -> bool:
        with self._lock:
            if self._completion_fired or episode != self._episode or self._loaded is None:
                return False
            self._completion_fired = True
            event = self._loaded.event

        if self._on_completion is None:
            return True
        try:
            self._on_completion(event)
            _LOGGER.info(f"Completion recorded for {event}.")
            return True
        except Exception as e:
            _LOGGER.error(f"Completion callback failed for {event}: {e}", exc_info=True)
            with self._lock:
                if episode == self._episode:
                    self._completion_error = e
            self._sink.on_completion_error(event, e)
            return False

    def _transition(self, new_state: StageRunState) -> None:
        previous = self._state
        self._state = new_state
        if previous is not new_state:
            _LOGGER.debug(f"Stage run {previous.value} -> {new_state.value}")
            self._sink.on_state_change(previous, new_state)
