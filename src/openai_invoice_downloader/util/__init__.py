from .dates import format_invoice_date, format_unix_date
from .money import cents_to_amount_str
from .strategies import Outcome, first_success

__all__ = ["format_invoice_date", "format_unix_date", "cents_to_amount_str", "Outcome", "first_success"]
