"""Unified-module extraction: emitters, translators and the extractor itself."""

from .extractor import ModuleExtractor, extract
from .translators import LLMTranslator, TranslatorRegistry

__all__ = ["LLMTranslator", "ModuleExtractor", "TranslatorRegistry", "extract"]
