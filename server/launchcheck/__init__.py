"""
LaunchCheck core

Fetches an app's source, detects its stack and runtime behavior, and turns
that into a plain-English launch verdict plus change alerts.
"""
