from .client import BillingPortalClient
from .selectors import PortalSelectors

__all__ = ["BillingPortalClient", "PortalSelectors"]
