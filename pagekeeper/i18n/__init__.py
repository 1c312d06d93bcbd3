from pagekeeper.i18n.auditor import TranslationAuditor, has_missing_translations
from pagekeeper.i18n.registry import BlockRegistry, default_registry

__all__ = ["BlockRegistry", "TranslationAuditor", "default_registry", "has_missing_translations"]
