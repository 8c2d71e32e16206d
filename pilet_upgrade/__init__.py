"""Upgrade pilets to newer versions of their app shell."""

VERSION = "1.0.0"
