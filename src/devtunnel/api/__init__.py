from devtunnel.api.status import router

__all__ = ["router"]
