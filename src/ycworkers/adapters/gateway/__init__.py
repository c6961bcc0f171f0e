from ycworkers.adapters.gateway.yandex import YandexCloudGateway

__all__ = ["YandexCloudGateway"]
