from ycworkers.adapters.launch.ssh import SshLauncher

__all__ = ["SshLauncher"]
