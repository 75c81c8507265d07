"""Utilities for running the small local language model behind the wrapped recap.

This module exposes :class:`TextGenerator`, a thin wrapper around a Hugging
Face Transformers causal language model, and :func:`detect_capabilities`, the
check used to decide which execution path the model should be placed on.

* The accelerated path (CUDA, ROCm or Apple ``mps``) is preferred; the CPU
  is the portable path that always works.
* 4-bit loading through ``bitsandbytes`` is used when CUDA is present and the
  package is installed, otherwise the model loads in standard precision.
* Sampling is fixed: the recap prompts are tuned for these values and callers
  only choose the token budget.

The class is deliberately synchronous.  :mod:`app.services.model_backend`
owns the lifecycle and moves the blocking calls off the event loop.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import torch
from transformers import AutoModelForCausalLM, AutoTokenizer

try:  # ``BitsAndBytesConfig`` requires an optional dependency (bitsandbytes).
    from transformers import BitsAndBytesConfig  # type: ignore
except ImportError:  # pragma: no cover - transformers should always provide this
    BitsAndBytesConfig = None  # type: ignore


LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL_ID = "HuggingFaceTB/SmolLM2-135M-Instruct"
MODEL_SIZE_MB = 150

SAMPLING_PARAMETERS: Dict[str, Any] = {
    "temperature": 0.8,
    "top_p": 0.95,
    "do_sample": True,
    "repetition_penalty": 1.2,
    "no_repeat_ngram_size": 3,
}

ProgressCallback = Callable[[Dict[str, Any]], None]


def detect_capabilities() -> Dict[str, Any]:
    """Report which execution paths are available on this machine.

    ``accelerated`` is true when a GPU backend is usable, ``portable`` is the
    CPU path.  ``recommended`` is the device string handed to the model.
    """

    cuda = torch.cuda.is_available()
    mps_backend = getattr(torch.backends, "mps", None)
    mps = bool(mps_backend is not None and mps_backend.is_available())
    accelerated = cuda or mps
    if cuda:
        recommended = "cuda"
    elif mps:
        recommended = "mps"
    else:
        recommended = "cpu"
    return {
        "supported": True,
        "accelerated": accelerated,
        "portable": True,
        "recommended": recommended,
    }


class TextGenerator:
    def __init__(
        self,
        model_path: str = DEFAULT_MODEL_ID,
        *,
        device: Optional[str] = None,
        use_4bit: bool = True,
        model_size_mb: float = MODEL_SIZE_MB,
        progress_callback: Optional[ProgressCallback] = None,
        trust_remote_code: bool = False,
    ):
        self.model_path = model_path
        self.device = device or detect_capabilities()["recommended"]
        self.use_4bit = use_4bit
        self.model_size_mb = model_size_mb
        self._progress_callback = progress_callback

        LOGGER.info("Loading %s on %s", model_path, self.device)
        self._report(0, "initiate")

        self.tokenizer = AutoTokenizer.from_pretrained(
            model_path,
            trust_remote_code=trust_remote_code,
        )
        if self.tokenizer.pad_token is None:
            # Small chat models rarely ship a pad token; reuse EOS so
            # ``generate`` does not warn on every call.
            self.tokenizer.pad_token = self.tokenizer.eos_token
        self._report(10, "progress", file="tokenizer.json")

        quantization_config = self._build_quantization_config()
        model_kwargs: Dict[str, Any] = {
            "torch_dtype": "auto",
            "trust_remote_code": trust_remote_code,
        }
        if quantization_config is not None:
            model_kwargs["quantization_config"] = quantization_config
            model_kwargs["device_map"] = "auto"

        self.model = AutoModelForCausalLM.from_pretrained(model_path, **model_kwargs)
        if quantization_config is None:
            self.model.to(self.device)
        self.model.eval()
        self._report(90, "progress", file="model.safetensors")

        self._report(100, "done")

    def _report(self, percent: float, status: str, *, file: Optional[str] = None) -> None:
        if self._progress_callback is None:
            return
        event: Dict[str, Any] = {
            "percent": percent,
            "loaded": round(percent / 100 * self.model_size_mb, 1),
            "total": self.model_size_mb,
            "status": status,
        }
        if file is not None:
            event["file"] = file
        self._progress_callback(event)

    def _build_quantization_config(self) -> Optional[BitsAndBytesConfig]:
        """Return a 4-bit quantisation config when supported.

        The recap works without ``bitsandbytes``; in that scenario (or when
        running on CPU or ``mps``) the model simply loads in standard precision.
        """

        if not self.use_4bit:
            return None

        if BitsAndBytesConfig is None:
            LOGGER.info("transformers BitsAndBytesConfig unavailable; using full precision model loading.")
            return None

        if self.device != "cuda":
            LOGGER.info("4-bit quantisation needs CUDA; loading %s in full precision.", self.device)
            return None

        try:  # Ensure optional dependency is present before configuring.
            import bitsandbytes  # type: ignore  # noqa: F401
        except ImportError:
            LOGGER.info("bitsandbytes not installed; using full precision model loading.")
            return None

        LOGGER.info("Loading model with 4-bit quantisation enabled.")
        return BitsAndBytesConfig(
            load_in_4bit=True,
            bnb_4bit_use_double_quant=True,
            bnb_4bit_quant_type="nf4",
            bnb_4bit_compute_dtype=torch.float16,
        )

    def _encode(self, messages: List[Dict[str, str]]):
        if getattr(self.tokenizer, "chat_template", None):
            prompt = self.tokenizer.apply_chat_template(
                messages,
                tokenize=False,
                add_generation_prompt=True,
            )
        else:
            prompt = "\n".join(message["content"] for message in messages)
        return self.tokenizer(prompt, return_tensors="pt").to(self.model.device)

    def _generate(self, messages: List[Dict[str, str]], max_new_tokens: int) -> str:
        if max_new_tokens <= 0:
            raise ValueError("max_new_tokens must be a positive integer")

        enc = self._encode(messages)
        t0 = time.perf_counter()
        with torch.no_grad():
            out = self.model.generate(
                **enc,
                max_new_tokens=int(max_new_tokens),
                pad_token_id=self.tokenizer.pad_token_id,
                **SAMPLING_PARAMETERS,
            )
        LOGGER.info("Generated %d tokens in %.2fs", out.shape[-1] - enc["input_ids"].shape[-1], time.perf_counter() - t0)

        # Only the completion is returned; the prompt is never echoed.
        prompt_len = enc["input_ids"].shape[-1]
        generated_ids = out[0, prompt_len:]
        if generated_ids.numel() == 0:
            return ""
        return self.tokenizer.decode(generated_ids, skip_special_tokens=True)

    def generate_response(self, prompt: str, *, max_new_tokens: int = 200) -> str:
        """Generate a plain-text completion for a single user ``prompt``."""
        return self._generate([{"role": "user", "content": prompt}], max_new_tokens).strip()

    def generate_chat(
        self,
        messages: List[Dict[str, str]],
        *,
        max_new_tokens: int = 200,
    ) -> List[Dict[str, str]]:
        """Return ``messages`` extended with the model's ``assistant`` turn."""
        reply = self._generate(messages, max_new_tokens)
        return [*messages, {"role": "assistant", "content": reply}]
