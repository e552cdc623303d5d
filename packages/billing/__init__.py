"""
Billing package - keeps user plans in sync with Stripe and enforces them.

This package integrates with:
- Stripe: subscription lifecycle webhooks and customer provisioning

Entitlement checks go through EntitlementService and usage limits through
QuotaService, both backed by the shared cache.
"""
