"""
Locust scenario user classes.

Each module in this package defines one Locust ``HttpUser`` subclass
that models a specific traffic pattern:

- :mod:`.rest_api` — read traffic against the trustify v2 REST API

Concrete scenarios inherit from :class:`.base.AuthenticatedApiUser`,
which handles OIDC authentication and response validation.
"""
