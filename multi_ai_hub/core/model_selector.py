"""
Model catalog and selection.

Scores a static catalog of chat models by declared health and latency and
picks the best candidate for a prompt category.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from .classifier import PromptCategory, classify_prompt


class ModelCategory(Enum):
    """Catalog categories a model can belong to."""
    FAST = "fast"
    LONG_FORM = "long-form"
    SPECIALIZED = "specialized"


@dataclass(frozen=True)
class ModelDescriptor:
    """Static description of a model available through the gateway."""
    id: str
    name: str
    provider: str
    category: ModelCategory
    latency_ms: int  # Declared latency in milliseconds
    health: int  # Declared health score, 0-100
    max_tokens: int = 0


@dataclass(frozen=True)
class ModelCatalog:
    """Ordered, immutable list of available models."""
    models: Tuple[ModelDescriptor, ...]

    def __post_init__(self):
        """An empty catalog is a deployment error, not a per-call one."""
        if not self.models:
            raise ValueError("model catalog must contain at least one model")

    def get_model(self, model_id: str) -> ModelDescriptor:
        """Get a model by id.

        Args:
            model_id: Model identifier

        Returns:
            ModelDescriptor for the model

        Raises:
            ValueError: If the model is not in the catalog
        """
        for model in self.models:
            if model.id == model_id:
                return model
        raise ValueError(f"Unknown model: {model_id}")

    def by_category(self, categories: FrozenSet[ModelCategory]) -> Tuple[ModelDescriptor, ...]:
        """Models in any of the given categories, in catalog order."""
        return tuple(m for m in self.models if m.category in categories)


CATEGORY_ROUTES: Dict[PromptCategory, FrozenSet[ModelCategory]] = {
    PromptCategory.QUICK: frozenset({ModelCategory.FAST}),
    PromptCategory.LONG: frozenset({ModelCategory.LONG_FORM}),
    PromptCategory.TECHNICAL: frozenset({ModelCategory.SPECIALIZED, ModelCategory.LONG_FORM}),
    PromptCategory.CREATIVE: frozenset({ModelCategory.LONG_FORM}),
}

HEALTH_WEIGHT = 0.6
LATENCY_WEIGHT = 0.4

# Chat models served through the gateway
DEFAULT_CATALOG = ModelCatalog((
    ModelDescriptor("allam-2-7b", "Allam 2 7B", "Groq", ModelCategory.FAST, 50, 98, 6000),
    ModelDescriptor("llama-3.1-8b-instant", "LLaMA 3.1 8B Instant", "Groq", ModelCategory.FAST, 45, 99, 6000),
    ModelDescriptor("meta-llama/llama-guard-4-12b", "LLaMA Guard 4 12B", "Meta", ModelCategory.SPECIALIZED, 60, 97, 15000),
    ModelDescriptor("llama-3.3-70b-versatile", "LLaMA 3.3 70B", "Groq", ModelCategory.LONG_FORM, 120, 96, 12000),
    ModelDescriptor("meta-llama/llama-4-scout-17b-16e-instruct", "LLaMA 4 Scout 17B", "Meta",
        ModelCategory.LONG_FORM, 100, 95, 30000),
    ModelDescriptor("meta-llama/llama-4-maverick-17b-128e-instruct", "LLaMA 4 Maverick 17B", "Meta",
        ModelCategory.LONG_FORM, 110, 94, 6000),
    ModelDescriptor("moonshotai/kimi-k2-instruct", "Kimi K2 Instruct", "MoonshotAI", ModelCategory.LONG_FORM, 130, 93, 10000),
    ModelDescriptor("groq/compound", "Groq Compound", "Groq", ModelCategory.SPECIALIZED, 80, 96, 70000),
    ModelDescriptor("openai/gpt-oss-20b", "GPT-OSS 20B", "OpenAI", ModelCategory.SPECIALIZED, 90, 95, 8000),
    ModelDescriptor("openai/gpt-oss-120b", "GPT-OSS 120B", "OpenAI", ModelCategory.LONG_FORM, 150, 92, 8000),
    ModelDescriptor("qwen/qwen3-32b", "Qwen 3 32B", "Qwen", ModelCategory.LONG_FORM, 100, 94, 6000),
))


def model_score(model: ModelDescriptor) -> float:
    """Weighted health/latency score; higher is better."""
    return HEALTH_WEIGHT * (model.health / 100) - LATENCY_WEIGHT * (model.latency_ms / 1000)


def select_best_model(
    category: PromptCategory,
    catalog: ModelCatalog = DEFAULT_CATALOG
) -> ModelDescriptor:
    """Pick the highest scoring model for a prompt category.

    Falls back to the full catalog when no model matches the category.
    Ties keep the model that appears first in the catalog.

    Args:
        category: Prompt category from classify_prompt
        catalog: Catalog to choose from

    Returns:
        A member of the catalog
    """
    candidates = catalog.by_category(CATEGORY_ROUTES[category]) or catalog.models
    # max() returns the first maximal element, which keeps catalog order on ties
    return max(candidates, key=model_score)


@dataclass(frozen=True)
class RoutingDecision:
    """Model chosen for a prompt and how it was chosen."""
    model: ModelDescriptor
    category: Optional[PromptCategory] = None  # None when the caller pinned a model

    @property
    def pinned(self) -> bool:
        return self.category is None


def route_prompt(
    prompt: str,
    catalog: ModelCatalog = DEFAULT_CATALOG,
    pinned_model: Optional[str] = None
) -> RoutingDecision:
    """Choose the model for a prompt.

    A pinned model id bypasses classification and scoring entirely.

    Raises:
        ValueError: If the pinned model is not in the catalog
    """
    if pinned_model:
        return RoutingDecision(model=catalog.get_model(pinned_model))

    category = classify_prompt(prompt)
    return RoutingDecision(model=select_best_model(category, catalog), category=category)
