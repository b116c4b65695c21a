"""
Performance testing package (Locust-based).

Contains the Locust user class, helper utilities, report writers and a
baseline checker that together load-test the trustify REST API and
detect regressions against an earlier run.

Traffic goes straight to the trustify API server (port 8080) with a
bearer token issued by Keycloak to the ``walker`` client, the same path
an API client takes.  The UI is not exercised.

Key Concepts Demonstrated:
- Weighted task distribution over list and detail endpoints
- OIDC client-credentials authentication shared by all virtual users
- Scenario ids taken from a JSON5 file matching the restored snapshot
- JSON/Markdown/HTML reports and a baseline comparison that sets the
  process exit code
"""
