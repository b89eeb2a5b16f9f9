"""
Download OpenAI billing invoices through the Stripe customer portal and email them.
"""

__version__ = "0.1.0"
