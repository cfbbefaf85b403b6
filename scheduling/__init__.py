"""Scheduling application for the clinic backend.

This package contains the appointment model, the scheduling dashboard
services, REST views and the WebSocket consumer that hosts a live
dashboard session.
"""
