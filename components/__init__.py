"""components/ -- Generic data access shared by every domain component.

Layer rule: components/ imports only stdlib, third-party libraries and core/.
Domain packages (auth/, milestone/) build their services on top of it.
"""
