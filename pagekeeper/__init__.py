from pagekeeper.capture.image_proxy import ImageProxyConverter
from pagekeeper.capture.screenshot import ScreenshotCapturer
from pagekeeper.core.orchestrator import SaveOrchestrator
from pagekeeper.core.state import SaveStateMachine
from pagekeeper.core.throttle import TrailingThrottle
from pagekeeper.core.types import (
    BlockRecord,
    BuilderProps,
    ImageSourceBackup,
    PageData,
    PageSnapshot,
    SaveStatus,
)
from pagekeeper.host.file_sink import FileSaveSink
from pagekeeper.i18n.auditor import TranslationAuditor, has_missing_translations
from pagekeeper.i18n.registry import BlockRegistry, default_registry

__all__ = [
    "SaveOrchestrator",
    "SaveStateMachine",
    "TrailingThrottle",
    "BlockRecord",
    "BuilderProps",
    "ImageSourceBackup",
    "PageData",
    "PageSnapshot",
    "SaveStatus",
    # Capture
    "ImageProxyConverter",
    "ScreenshotCapturer",
    # Translations
    "BlockRegistry",
    "TranslationAuditor",
    "default_registry",
    "has_missing_translations",
    # Host
    "FileSaveSink",
]
