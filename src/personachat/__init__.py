"""
PersonaChat - persona companions with scheduled check-ins.

Users configure personas (traits, interests, messaging frequency) and chat
with them in-app. A background dispatch tick lets active personas reach out
on their own, optionally mirrored to WhatsApp.
"""

__version__ = "1.0.0"
