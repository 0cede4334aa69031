"""Completion-service integration: extraction, analysis, insights and goals."""
from .advisor import FinancialAdvisor, select_new_goals
from .client import CompletionClient, GeminiCompletionClient
from .extractor import ExtractionResult, LLMTransactionExtractor, run_in_batches
from .json_utils import parse_json

__all__ = [
    "FinancialAdvisor",
    "select_new_goals",
    "CompletionClient",
    "GeminiCompletionClient",
    "ExtractionResult",
    "LLMTransactionExtractor",
    "run_in_batches",
    "parse_json",
]
