from .cli import build_synchronizer, main_cli

__all__ = ["build_synchronizer", "main_cli"]
