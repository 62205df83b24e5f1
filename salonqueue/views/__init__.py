from .router import router  # noqa: F401
