"""
Tests for the model catalog and selection.
"""
import pytest

from multi_ai_hub.core.classifier import PromptCategory
from multi_ai_hub.core.model_selector import (
    DEFAULT_CATALOG,
    ModelCatalog,
    ModelCategory,
    ModelDescriptor,
    model_score,
    route_prompt,
    select_best_model,
)


def make_model(model_id, category, latency_ms=100, health=90):
    return ModelDescriptor(
        id=model_id,
        name=model_id.title(),
        provider="test",
        category=category,
        latency_ms=latency_ms,
        health=health
    )


class TestModelCatalog:
    """Test catalog construction and lookup."""

    def test_empty_catalog_is_rejected(self):
        with pytest.raises(ValueError, match="at least one model"):
            ModelCatalog(())

    def test_get_model(self):
        model = DEFAULT_CATALOG.get_model("groq/compound")
        assert model.name == "Groq Compound"
        assert model.category == ModelCategory.SPECIALIZED

    def test_get_unknown_model(self):
        with pytest.raises(ValueError, match="Unknown model"):
            DEFAULT_CATALOG.get_model("no-such-model")


class TestModelScore:
    """Test the weighted health/latency formula."""

    def test_score_formula(self):
        model = make_model("m", ModelCategory.FAST, latency_ms=50, health=98)
        assert model_score(model) == pytest.approx(0.6 * 0.98 - 0.4 * 0.05)

    def test_higher_health_scores_higher(self):
        a = make_model("a", ModelCategory.FAST, health=90)
        b = make_model("b", ModelCategory.FAST, health=95)
        assert model_score(b) > model_score(a)

    def test_higher_latency_scores_lower(self):
        a = make_model("a", ModelCategory.FAST, latency_ms=50)
        b = make_model("b", ModelCategory.FAST, latency_ms=500)
        assert model_score(b) < model_score(a)


class TestSelectBestModel:
    """Test category filtering and scoring."""

    def test_quick_picks_best_fast_model(self):
        model = select_best_model(PromptCategory.QUICK)
        assert model.category == ModelCategory.FAST
        fast_models = DEFAULT_CATALOG.by_category(frozenset({ModelCategory.FAST}))
        assert all(model_score(model) >= model_score(m) for m in fast_models)
        assert model.id == "llama-3.1-8b-instant"

    def test_long_picks_long_form_model(self):
        model = select_best_model(PromptCategory.LONG)
        assert model.category == ModelCategory.LONG_FORM
        assert model.id == "meta-llama/llama-4-scout-17b-16e-instruct"

    def test_creative_picks_long_form_model(self):
        assert select_best_model(PromptCategory.CREATIVE).category == ModelCategory.LONG_FORM

    def test_technical_considers_specialized_and_long_form(self):
        model = select_best_model(PromptCategory.TECHNICAL)
        assert model.category in (ModelCategory.SPECIALIZED, ModelCategory.LONG_FORM)
        assert model.id == "meta-llama/llama-guard-4-12b"

    def test_falls_back_to_full_catalog(self):
        """No fast models means the whole catalog competes."""
        catalog = ModelCatalog((
            make_model("slow", ModelCategory.LONG_FORM, latency_ms=300, health=90),
            make_model("quick", ModelCategory.SPECIALIZED, latency_ms=50, health=90),
        ))
        model = select_best_model(PromptCategory.QUICK, catalog)
        assert model.id == "quick"

    def test_ties_keep_catalog_order(self):
        catalog = ModelCatalog((
            make_model("first", ModelCategory.FAST),
            make_model("second", ModelCategory.FAST),
        ))
        assert select_best_model(PromptCategory.QUICK, catalog).id == "first"

    def test_result_is_catalog_member(self):
        for category in PromptCategory:
            assert select_best_model(category) in DEFAULT_CATALOG.models

    def test_catalog_is_not_mutated(self):
        before = DEFAULT_CATALOG.models
        select_best_model(PromptCategory.TECHNICAL)
        assert DEFAULT_CATALOG.models == before


class TestRoutePrompt:
    """Test the classify-then-select path and model pinning."""

    def test_routes_by_classification(self):
        decision = route_prompt("hi")
        assert decision.category == PromptCategory.QUICK
        assert decision.model.category == ModelCategory.FAST
        assert not decision.pinned

    def test_pinned_model_bypasses_routing(self):
        decision = route_prompt("hi", pinned_model="qwen/qwen3-32b")
        assert decision.pinned
        assert decision.category is None
        assert decision.model.id == "qwen/qwen3-32b"

    def test_unknown_pinned_model(self):
        with pytest.raises(ValueError):
            route_prompt("hi", pinned_model="missing")
