from portal.middlewares.db_middleware import DatabaseMiddleware
from portal.middlewares.services_middleware import ServicesMiddleware

__all__ = ["DatabaseMiddleware", "ServicesMiddleware"]
