from .client import AdminApiClient
