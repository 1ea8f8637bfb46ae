"""
Inbound request inspection core.

This package holds everything a request passes through before it reaches
business logic:

- checks: fixed threat signatures, the shared signature matcher and the
  percent-decoding normalizer
- pipeline: the ordered inspector chain (header injection, shape
  validation, XSS/SQL-injection inspection, transport and origin policy,
  rate limiting, authentication, authorization) and its ASGI runner
- identity: signed token issuing/verification and the Identity record
"""

__version__ = "1.0.0"
