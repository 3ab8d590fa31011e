import json
import logging
from types import SimpleNamespace

import pytest

from flowrun.filtering.keywords import keyword_filter_array, keyword_filter_object
from flowrun.filtering.llm import LanguageModelFilter
from flowrun.filtering.service import (
    FilterInputError,
    FilterService,
    InvalidFilterTypeError,
    create_filter_service,
)


class FakeCompletions:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _model(reply=None, error=None):
    completions = FakeCompletions(reply, error)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return LanguageModelFilter(api_key="sk-test", client=client), completions


class TestKeywordFallback:
    def test_warm_condition_keeps_summer_items(self):
        items = [{"name": "T-Shirt"}, {"name": "Wool Coat"}, {"name": "Sandals"}]
        assert keyword_filter_array(items, "Warm weather") == [{"name": "T-Shirt"}]

    def test_cold_condition_keeps_winter_items(self):
        items = ["Winter jacket", "linen dress", "SWEATER"]
        assert keyword_filter_array(items, "for COLD days") == ["Winter jacket", "SWEATER"]

    def test_unrecognised_condition_keeps_everything(self, caplog):
        items = [1, 2, 3]
        with caplog.at_level(logging.WARNING):
            assert keyword_filter_array(items, "prime numbers") == [1, 2, 3]
        assert "returning all items" in caplog.text

    def test_objects_are_unchanged(self):
        obj = {"a": 1}
        assert keyword_filter_object(obj, "remove a") == {"a": 1}


class TestFilterService:
    def test_empty_condition_returns_data(self):
        assert FilterService().filter("anything", "", {"a": 1}) == {"a": 1}

    def test_invalid_type(self):
        with pytest.raises(InvalidFilterTypeError):
            FilterService().filter("list", "summer", [])

    def test_shape_mismatch(self):
        with pytest.raises(FilterInputError, match="not an array"):
            FilterService().filter("array", "summer", {"a": 1})
        with pytest.raises(FilterInputError, match="not an object"):
            FilterService().filter("object", "drop a", [1])

    def test_language_model_result_is_used(self):
        model, completions = _model('Here you go: ["b"]')
        service = FilterService(language_model=model)

        assert service.filter("array", "only b", ["a", "b"], {"data": ["a", "b"]}) == ["b"]
        request = completions.requests[0]
        assert request["model"] == "gpt-3.5-turbo"
        assert request["temperature"] == 0.1
        prompt = request["messages"][1]["content"]
        assert "Condition: only b" in prompt
        assert json.dumps(["a", "b"], indent=2) in prompt

    def test_language_model_object_filter(self):
        model, _ = _model('{"keep": 1}')
        assert FilterService(language_model=model).filter("object", "drop x", {"keep": 1, "x": 2}) == {"keep": 1}

    def test_language_model_failure_falls_back_to_keywords(self, caplog):
        model, _ = _model(error=RuntimeError("rate limited"))
        service = FilterService(language_model=model)

        with caplog.at_level(logging.ERROR):
            result = service.filter("array", "summer", ["a warm dress", "a wool coat"])

        assert result == ["a warm dress"]
        assert "keyword fallback" in caplog.text

    def test_unparseable_reply_falls_back_to_keywords(self):
        model, _ = _model("I cannot help with that")
        service = FilterService(language_model=model)
        assert service.filter("array", "winter", ["coat", "dress"]) == ["coat"]

    def test_factory_attaches_model_only_with_key(self):
        assert not create_filter_service().uses_language_model
        assert create_filter_service(api_key="sk-test", model="gpt-4o-mini").uses_language_model
