"""
Error taxonomy for the tracking and enrichment pipeline
"""


class VisitorIntelError(Exception):
    """Base error for the visitor intelligence core"""


class MissingTenantContext(VisitorIntelError, ValueError):
    """An inbound request carried no tenant identifier"""

    def __init__(self, message: str = "tenant_id is required"):
        super().__init__(message)


class AdapterFailure(VisitorIntelError):
    """A source adapter got an unusable answer from its provider"""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class ConcurrentUpdateConflict(VisitorIntelError):
    """An atomic company upsert could not be completed"""

    def __init__(self, tenant_id: str, domain: str):
        self.tenant_id = tenant_id
        self.domain = domain
        super().__init__(f"Concurrent upsert conflict for {tenant_id}/{domain}")


def require_tenant(tenant_id) -> str:
    """Return the stripped tenant id or raise MissingTenantContext"""
    if tenant_id is None or not str(tenant_id).strip():
        raise MissingTenantContext()
    return str(tenant_id).strip()
