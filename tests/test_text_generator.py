import pytest
import torch

import text_generator
from text_generator import SAMPLING_PARAMETERS, TextGenerator

PROMPT_IDS = [[11, 12, 13]]


class DummyEncoding(dict):
    def to(self, device):
        self.device = device
        return self


class DummyTokenizer:
    eos_token = "</s>"
    pad_token_id = 0

    def __init__(self, chat_template="{{ messages }}"):
        self.pad_token = None
        self.chat_template = chat_template
        self.templated = []
        self.encoded = []
        self.decoded = []

    def apply_chat_template(self, messages, *, tokenize, add_generation_prompt):
        self.templated.append((messages, tokenize, add_generation_prompt))
        return "<chat>" + messages[-1]["content"]

    def __call__(self, prompt, return_tensors):
        self.encoded.append(prompt)
        return DummyEncoding(input_ids=torch.tensor(PROMPT_IDS))

    def decode(self, ids, skip_special_tokens):
        self.decoded.append((ids.tolist(), skip_special_tokens))
        return " Soft keys hum at dawn "


class DummyModel:
    device = "cpu"

    def __init__(self, completion=(7, 8)):
        self.completion = list(completion)
        self.calls = []
        self.moved_to = None
        self.evaluated = False

    def to(self, device):
        self.moved_to = device
        return self

    def eval(self):
        self.evaluated = True
        return self

    def generate(self, **kwargs):
        self.calls.append(kwargs)
        return torch.tensor([PROMPT_IDS[0] + self.completion])


@pytest.fixture
def patched(monkeypatch):
    tokenizer = DummyTokenizer()
    model = DummyModel()
    loaded = {}

    class FakeAutoTokenizer:
        @staticmethod
        def from_pretrained(path, **kwargs):
            loaded["tokenizer"] = (path, kwargs)
            return tokenizer

    class FakeAutoModel:
        @staticmethod
        def from_pretrained(path, **kwargs):
            loaded["model"] = (path, kwargs)
            return model

    monkeypatch.setattr(text_generator, "AutoTokenizer", FakeAutoTokenizer)
    monkeypatch.setattr(text_generator, "AutoModelForCausalLM", FakeAutoModel)
    return tokenizer, model, loaded


def _generator(**kwargs):
    return TextGenerator("local/tiny-model", device="cpu", use_4bit=False, **kwargs)


def test_loading_reports_progress_and_prepares_model(patched):
    tokenizer, model, loaded = patched
    events = []

    _generator(model_size_mb=200, progress_callback=events.append)

    assert [event["status"] for event in events] == ["initiate", "progress", "progress", "done"]
    assert events[1] == {"percent": 10, "loaded": 20.0, "total": 200, "status": "progress", "file": "tokenizer.json"}
    assert events[-1]["percent"] == 100
    assert tokenizer.pad_token == "</s>"
    assert loaded["model"] == ("local/tiny-model", {"torch_dtype": "auto", "trust_remote_code": False})
    assert model.moved_to == "cpu"
    assert model.evaluated


def test_generate_chat_uses_fixed_sampling_and_returns_only_the_completion(patched):
    tokenizer, model, _ = patched
    messages = [{"role": "user", "content": "Write a haiku"}]

    result = _generator().generate_chat(messages, max_new_tokens=50)

    assert result == [*messages, {"role": "assistant", "content": " Soft keys hum at dawn "}]
    (call,) = model.calls
    assert call["max_new_tokens"] == 50
    assert call["pad_token_id"] == 0
    assert call["temperature"] == 0.8
    assert call["top_p"] == 0.95
    assert call["do_sample"] is True
    assert call["repetition_penalty"] == 1.2
    assert call["no_repeat_ngram_size"] == 3
    assert {key: call[key] for key in SAMPLING_PARAMETERS} == SAMPLING_PARAMETERS
    assert tokenizer.templated == [(messages, False, True)]
    assert tokenizer.encoded == ["<chat>Write a haiku"]
    assert tokenizer.decoded == [([7, 8], True)]


def test_generate_response_strips_completion(patched):
    assert _generator().generate_response("Write a haiku") == "Soft keys hum at dawn"


def test_prompt_is_joined_without_chat_template(patched):
    tokenizer, _, _ = patched
    tokenizer.chat_template = None

    _generator().generate_chat(
        [{"role": "system", "content": "Be brief"}, {"role": "user", "content": "Write a haiku"}],
        max_new_tokens=10,
    )

    assert tokenizer.templated == []
    assert tokenizer.encoded == ["Be brief\nWrite a haiku"]


def test_empty_completion_returns_empty_string(patched):
    tokenizer, model, _ = patched
    model.completion = []

    assert _generator().generate_response("Write a haiku") == ""
    assert tokenizer.decoded == []


def test_non_positive_token_budget_is_rejected(patched):
    _, model, _ = patched

    with pytest.raises(ValueError):
        _generator().generate_response("Write a haiku", max_new_tokens=0)
    assert model.calls == []
