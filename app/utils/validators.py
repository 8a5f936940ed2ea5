"""
Validation utilities
"""
import re


def validate_email(email):
    """
    Validate email format

    Args:
        email (str): Email address to validate

    Returns:
        bool: True if valid, False otherwise
    """
    if not email:
        return False

    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def validate_phone(phone):
    """
    Validate phone number format (US/Canada, or international E.164)

    Args:
        phone (str): Phone number to validate

    Returns:
        bool: True if valid, False otherwise
    """
    if not phone:
        return False

    # Remove common separators
    cleaned = re.sub(r'[\s\-\(\)\.]', '', phone)

    # US/Canada: 10 or 11 digits (with optional +1)
    if re.match(r'^(\+?1)?[2-9]\d{9}$', cleaned):
        return True

    return bool(re.match(r'^\+[1-9]\d{7,14}$', cleaned))
