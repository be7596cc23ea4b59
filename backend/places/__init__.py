"""
Upstream place-search integration.

Responsibilities:
- Manage Places API configuration and credentials.
- Issue one nearby-search request per category type.
- Validate the response envelope and surface typed errors.
"""
