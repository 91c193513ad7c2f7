"""
API Gateway Service package for the hospital management platform.

The gateway fronts client requests, enforcing:
- Authentication: bearer tokens verified locally, revocation via the auth service
- Authorization: static per-route role requirements (patient / staff)
- Routing: first-match prefix table mapping paths to microservices
- Proxying: transparent relay of downstream responses

Structure:
- app.main: FastAPI app, routes, and middleware wiring.
- app.auth: Principal, token authentication and role checks.
- app.adapters: HTTP clients for internal services.
- app.routing: Service resolution and route access policies.
- app.proxy: Downstream forwarding and aggregated health.
- app.domain: Request pipeline and error translation.
- app.ratelimit: Fixed-window limiter and middleware helper.
"""
