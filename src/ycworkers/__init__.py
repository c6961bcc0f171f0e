"""yc-workers - on-demand Yandex Cloud build workers."""

__version__ = "0.1.0"
