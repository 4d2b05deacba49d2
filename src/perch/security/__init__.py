"""Security: CSRF token signing and validation.

    from perch.security import SecurityManager

    security = app.security_manager
    token = security.generate_csrf_token()   # set as cookie + form field
    security.validate_csrf(request)          # raises AuthError on mismatch
"""

from perch.security.manager import SecurityManager

__all__ = ["SecurityManager"]
