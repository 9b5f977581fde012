"""Frame driver for the N-body simulation.

Import ``core.application`` explicitly; it pulls in OpenGL, which the
headless tools and tests do not need.
"""
