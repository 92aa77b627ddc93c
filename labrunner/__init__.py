"""LabRunner test-runner client.

Serves a local directory of test assets, connects to a remote orchestration
server over a websocket, relays proxied HTTP requests to the local assets and
streams test results to the terminal.
"""

__version__ = "0.1.0"
