from ibc.engine.dispatcher import Dispatcher, HandlerOutput

__all__ = ["Dispatcher", "HandlerOutput"]
