"""
Request integrity and payment security service for the storefront.

The service fronts storefront API routes, enforcing:
- Rate limiting: fixed-window counters per client and endpoint class
- CSRF: double-submit cookie check on state-changing requests
- Payment signatures: PayFast-compatible signing and ITN verification

Structure:
- app.main: FastAPI app, routes, and middleware wiring.
- app.signature: Canonicalization and MD5 signing codec.
- app.payments: Gateway identities, checkout, ITN parsing, refunds.
- app.csrf: Double-submit token guard.
- app.ratelimit: Fixed-window limiter and counter stores.
- app.domain: Request integrity middleware.
"""
