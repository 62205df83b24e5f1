"""Shared validation utilities"""

import re
from typing import Optional


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a phone number.

    Args:
        phone: Phone number string in various formats

    Returns:
        Phone number reduced to digits, keeping a leading "+"

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    phone = phone.strip()
    prefix = "+" if phone.startswith("+") else ""
    digits = re.sub(r"\D", "", phone)

    if not 6 <= len(digits) <= 15:
        raise ValueError("Phone number must have between 6 and 15 digits")

    return f"{prefix}{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_contact_info(contact_info: str) -> str:
    """Contact info is an email when it contains "@", otherwise a phone number"""
    if not contact_info or not contact_info.strip():
        raise ValueError("Contact info is required")
    if "@" in contact_info:
        return validate_email(contact_info)
    return validate_phone(contact_info)


def split_contact_info(contact_info: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Return (email, phone) for a single contact string"""
    if not contact_info:
        return None, None
    if "@" in contact_info:
        return contact_info, None
    return None, contact_info
