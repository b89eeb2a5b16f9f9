from .client import BillingApiClient, extract_login_credentials, normalize_invoice, pdf_url_for

__all__ = ["BillingApiClient", "extract_login_credentials", "normalize_invoice", "pdf_url_for"]
