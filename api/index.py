"""
Serverless entry point for the Incident SLA API
"""
import os

# Sweeps are driven by an external timer in serverless deployments
os.environ.setdefault("ENVIRONMENT", "production")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from mangum import Mangum

from incident_sla.main import app, configure_serverless

# Lifespan is off, so logging, database, rule table and notifier are set up here
configure_serverless(app)

# Lambda handler for ASGI app (disable lifespan for serverless)
handler = Mangum(app, lifespan="off")
