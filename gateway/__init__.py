# gateway/__init__.py
"""
Keep this file minimal so 'gateway' is always a proper package.

Do NOT import submodules here. The server is assembled by the bootstrap:
    from gateway.main import create_server
and started from the console entry point:
    admission-gateway --port 3000
"""

__version__ = "1.0.0"
