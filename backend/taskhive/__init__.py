"""TaskHive — collaborative project and task manager backend."""

__version__ = "0.3.0"
