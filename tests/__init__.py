"""
Test suite for the trustify load-test stack.

This package contains:
- unit/: stack model, compose rendering, job and report tests
- smoke/: checks against a running stack (opt-in, ``-m smoke``)
- performance/: the Locust load test run by the ``loadtests`` service
"""
