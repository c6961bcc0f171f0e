from ycworkers.adapters.registry.memory import NodeRegistry

__all__ = ["NodeRegistry"]
