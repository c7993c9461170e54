"""Swedbank provider package."""

from swedbankjson.providers.swedbank.auth import MobileBankID, PersonalCode
from swedbankjson.providers.swedbank.client import SwedbankClient

__all__ = ["MobileBankID", "PersonalCode", "SwedbankClient"]
