"""
Authentication application.

Email-based user accounts for the ledger. Tokens are issued by
djangorestframework-simplejwt; this app only owns the user model.

Usage:
    from authentication.models import User
"""
