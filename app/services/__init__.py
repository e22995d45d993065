"""
Service Organization
====================
Services are organized by their role:

**application/**
  Singleton services managed by ServiceContainer. One instance per application.
  Examples: TelemetryService, AlertService, DowntimeService, PlantHealthService

**ai/**
  Language-model backends and the scheme matcher built on them.

Construction and wiring live in ``container_builder.py``.
"""
