"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (the ShipsGo HTTP API, the
disk cache, the rate limit file, the console) by implementing the
interfaces defined in the domain layer.
"""
