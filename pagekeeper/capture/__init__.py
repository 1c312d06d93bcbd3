from pagekeeper.capture.image_proxy import ImageProxyConverter
from pagekeeper.capture.screenshot import ScreenshotCapturer

__all__ = ["ImageProxyConverter", "ScreenshotCapturer"]
