"""Lifecycle of the local text-generation model.

:class:`ModelBackend` loads the model once per process and hands the same
generator to every caller.  Loading runs on a dedicated worker thread; all
callers that arrive while it is in flight wait on the same future, so there is
never more than one load.  A failed load is terminal: every waiter, and every
later caller, receives the same :class:`BackendUnavailable` error and is
expected to fall back to template text.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from .output_normalizer import normalize_output

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[Dict[str, Any]], None]
Loader = Callable[[ProgressCallback], Any]


class BackendUnavailable(RuntimeError):
    """Raised when the text generation model cannot be initialised."""


class GenerationFailed(RuntimeError):
    """Raised when a single generation call fails inside the model."""


class BackendState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    percent: float
    loaded: float
    total: float
    status: str
    file: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if data["file"] is None:
            data.pop("file")
        return data


class ModelBackend:
    def __init__(self, loader: Optional[Loader], *, model_size_mb: float = 150):
        self._loader = loader
        self.model_size_mb = model_size_mb
        self._lock = threading.Lock()
        self._state = BackendState.UNLOADED
        self._future: Optional["Future[Any]"] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._observers: List[ProgressCallback] = []
        self._generator: Any = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ModelBackend":
        """Build a backend for the model named in a Flask-style ``config``."""

        model_path = config.get("TEXT_GENERATOR_MODEL_PATH")
        model_size_mb = config.get("MODEL_SIZE_MB", 150)
        if not model_path:
            return cls(None, model_size_mb=model_size_mb)

        use_4bit = bool(config.get("TEXT_GENERATOR_USE_4BIT", True))

        def load(progress: ProgressCallback) -> Any:
            from text_generator import TextGenerator, detect_capabilities

            device = detect_capabilities()["recommended"]
            return TextGenerator(
                model_path,
                device=device,
                use_4bit=use_4bit,
                model_size_mb=model_size_mb,
                progress_callback=progress,
            )

        return cls(load, model_size_mb=model_size_mb)

    @property
    def state(self) -> BackendState:
        return self._state

    def is_ready(self) -> bool:
        return self._state is BackendState.READY

    async def acquire(self, on_progress: Optional[ProgressCallback] = None) -> Any:
        """Return the loaded generator, starting the load on first use."""

        if self._state is BackendState.READY:
            self._notify_ready(on_progress)
            return self._generator

        future = self._start_load(on_progress)
        generator = await asyncio.wrap_future(future)
        self._notify_ready(on_progress)
        return generator

    async def generate(self, prompt: str, max_tokens: int = 200) -> str:
        """Run one prompt through the model and return its normalised text.

        Raises :class:`BackendUnavailable` when the model cannot be loaded and
        :class:`GenerationFailed` when the model call itself raises.  Odd or
        empty output is returned as-is for the caller to judge.
        """

        generator = await self.acquire()
        try:
            raw = await asyncio.to_thread(_run_generator, generator, prompt, max_tokens)
        except Exception as exc:
            raise GenerationFailed(f"Text generation failed: {exc}") from exc
        return normalize_output(raw)

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)

    def _start_load(self, on_progress: Optional[ProgressCallback]) -> "Future[Any]":
        with self._lock:
            if self._future is None:
                if self._loader is None:
                    self._future = Future()
                    self._future.set_exception(
                        BackendUnavailable("No text generation model is configured.")
                    )
                    self._state = BackendState.FAILED
                else:
                    self._state = BackendState.LOADING
                    self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="model-load")
                    self._future = self._executor.submit(self._load)
            if on_progress is not None and self._state is BackendState.LOADING:
                self._observers.append(on_progress)
            return self._future

    def _load(self) -> Any:
        LOGGER.info("Loading text generation model")
        try:
            generator = self._loader(self._forward_progress)
        except Exception as exc:
            LOGGER.warning("Failed to load text generation model: %s", exc)
            with self._lock:
                self._state = BackendState.FAILED
                self._observers.clear()
            raise BackendUnavailable(
                "Failed to load the text generation model. This machine may not support it."
            ) from exc

        with self._lock:
            self._generator = generator
            self._state = BackendState.READY
            self._observers.clear()
        LOGGER.info("Text generation model ready")
        return generator

    def _forward_progress(self, event: Mapping[str, Any]) -> None:
        if event.get("status") != "progress":
            return
        with self._lock:
            observers = list(self._observers)
        percent = float(event.get("percent") or 0)
        payload = ProgressEvent(
            percent=percent,
            loaded=round(percent / 100 * self.model_size_mb, 1),
            total=self.model_size_mb,
            status="progress",
            file=event.get("file"),
        ).as_dict()
        for observer in observers:
            try:
                observer(payload)
            except Exception:
                LOGGER.exception("Progress observer raised")

    def _notify_ready(self, on_progress: Optional[ProgressCallback]) -> None:
        if on_progress is None:
            return
        try:
            on_progress({"percent": 100, "loaded": self.model_size_mb, "total": self.model_size_mb, "status": "ready"})
        except Exception:
            LOGGER.exception("Progress observer raised")


def _run_generator(generator: Any, prompt: str, max_tokens: int) -> Any:
    messages = [{"role": "user", "content": prompt}]
    if hasattr(generator, "generate_chat"):
        return generator.generate_chat(messages, max_new_tokens=max_tokens)
    return generator.generate_response(prompt, max_new_tokens=max_tokens)
