"""Periodic bridge runs"""
