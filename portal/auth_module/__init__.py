from .database import Base, engine
from .middleware import ClientIdMiddleware
from .routes import router


def init_auth_module() -> None:
    Base.metadata.create_all(bind=engine)


__all__ = ["router", "init_auth_module", "ClientIdMiddleware"]
