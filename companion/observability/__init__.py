"""Logging and telemetry helpers"""
