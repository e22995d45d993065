"""
API Blueprints
==============
All JSON endpoints live under ``/api/v1``.
"""
from flask import Flask

from app.blueprints.api.alerts import alerts_api
from app.blueprints.api.dashboard import dashboard_api
from app.blueprints.api.downtime import downtime_api
from app.blueprints.api.machines import machines_api
from app.blueprints.api.simulator import simulator_api
from app.blueprints.api.telemetry import telemetry_api

V1 = "/api/v1"


def register_api_blueprints(flask_app: Flask) -> None:
    flask_app.register_blueprint(telemetry_api, url_prefix=f"{V1}/telemetry")
    flask_app.register_blueprint(alerts_api, url_prefix=f"{V1}/alerts")
    flask_app.register_blueprint(downtime_api, url_prefix=f"{V1}/downtime")
    flask_app.register_blueprint(machines_api, url_prefix=f"{V1}/machines")
    flask_app.register_blueprint(dashboard_api, url_prefix=f"{V1}/dashboard")
    flask_app.register_blueprint(simulator_api, url_prefix=f"{V1}/simulator")
