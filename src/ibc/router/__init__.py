from ibc.router.module import Module, Router, invoke_callback

__all__ = ["Module", "Router", "invoke_callback"]
