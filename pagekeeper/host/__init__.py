from pagekeeper.host.file_sink import FileSaveSink

__all__ = ["FileSaveSink"]
