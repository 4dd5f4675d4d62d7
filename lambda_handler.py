"""
AWS Lambda entry point

Translates API Gateway / ALB / function URL events into ASGI requests for
the same app uvicorn serves. The app lifespan runs on every invocation, so
the database connection is opened and closed around each event.
"""

from mangum import Mangum

from main import app

handler = Mangum(app, lifespan="auto")
