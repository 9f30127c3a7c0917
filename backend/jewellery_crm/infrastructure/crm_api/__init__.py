"""CRM REST API infrastructure package."""

from .crm_api_client import CrmApiClient

__all__ = ["CrmApiClient"]
