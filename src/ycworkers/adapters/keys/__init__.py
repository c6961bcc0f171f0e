from ycworkers.adapters.keys.file import FileKeyProvider, public_fingerprint

__all__ = ["FileKeyProvider", "public_fingerprint"]
