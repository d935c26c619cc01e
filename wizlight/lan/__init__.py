"""LAN discovery and command layer for WiZ bulbs.

Finds one bulb by MAC on an unknown local network (broadcast probe raced
against a /24 subnet scan), caches its address, and sends verified commands
over the bulb's unauthenticated UDP/JSON protocol.
"""
