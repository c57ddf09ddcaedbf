"""ipgate access-control gate.

Public API:
    AccessControlMiddleware: Starlette middleware enforcing the allow-list
    AdmissionDecision:       admitted / rejected outcome of one check
    RequestContext:          per-request facts the decision is logged with
"""
from ipgate.gate.middleware import AccessControlMiddleware, AdmissionDecision, RequestContext

__all__ = ["AccessControlMiddleware", "AdmissionDecision", "RequestContext"]
